"""Commands: docs, check, remove, clear, sync.

Each command reports progress through a :class:`~engrain.reporting.Reporter`
and raises :class:`~engrain.exceptions.CommandError` once a fatal problem has
been reported. Lock-file failures are never fatal.
"""

from __future__ import annotations

import shutil
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from engrain.exceptions import CommandError, EngrainError, GitCloneError, UnsafePathError
from engrain.git import cleanup_temp_dir, clone_repo, fetch_latest_commit_hash
from engrain.index import generate_index, validate_index
from engrain.injector import inject_index, remove_block, remove_wrapper
from engrain.lock import LOCAL_COMMIT, LockEntryData, LockStore
from engrain.logging import logger
from engrain.sanitize import is_path_safe, sanitize_name
from engrain.settings import DocsProfile
from engrain.size import format_size
from engrain.source import SourceType, extract_repo_name, parse_source

if TYPE_CHECKING:
    from engrain.reporting import Reporter
    from engrain.settings import CheckSettings, ClearSettings, DocsSettings, RemoveSettings, SyncSettings

DOCS_ROOT_CANDIDATES = ("docs", "doc", "documentation")
AGENTS_FILE = "AGENTS.md"
CLAUDE_FILE = "CLAUDE.md"
PREVIEW_CHARS = 200


def fail(error: BaseException | str, label: str, reporter: Reporter) -> CommandError:
    """Report a failed step and build the CommandError to raise.

    Args:
        error (BaseException | str): what went wrong.
        label (str): step name (``clone``, ``index``...).
        reporter (Reporter): progress channel.

    Returns:
        CommandError: the error carrying ``error``'s message.
    """
    message = str(error)
    reporter.error(f"{label} failed")
    reporter.message(message)
    logger.error("command_failed", step=label, error=message)
    return CommandError(message)


def detect_output_file(project: Path, reporter: Reporter) -> Path:
    """Pick the injection target: AGENTS.md, else an existing CLAUDE.md, else AGENTS.md."""
    agents = project / AGENTS_FILE
    claude = project / CLAUDE_FILE
    if agents.exists() and claude.exists():
        reporter.warn(
            "Both AGENTS.md and CLAUDE.md exist. Writing to AGENTS.md (preferred for agent context).",
        )
        return agents
    if claude.exists():
        return claude
    return agents


def detect_docs_root(repo_root: Path) -> str | None:
    """Find a top-level docs folder (``docs``, ``doc``, ``documentation``), case-insensitively."""
    try:
        dirs = {p.name.lower(): p.name for p in repo_root.iterdir() if p.is_dir()}
    except OSError:
        return None
    for candidate in DOCS_ROOT_CANDIDATES:
        if candidate in dirs:
            return dirs[candidate]
    return None


def list_root_readmes(repo_root: Path) -> list[str]:
    try:
        return sorted(p.name for p in repo_root.iterdir() if p.is_file() and p.name.lower().startswith("readme"))
    except OSError:
        return []


def copy_docs(
    source_root: Path,
    target: Path,
    *,
    subpath: str | None,
    profile: DocsProfile,
) -> str | None:
    """Copy the documentation part of a checkout into ``target``.

    With an explicit ``subpath`` that directory is copied. Otherwise the
    ``docs`` profile copies the docs folder (keeping its name) plus the root
    README files, falling back to the whole repository; the ``repo`` profile
    copies the whole repository.

    Args:
        source_root (Path): repository checkout.
        target (Path): destination directory, replaced if it exists.
        subpath (str | None): explicit directory inside the repository.
        profile (DocsProfile): selection profile.

    Raises:
        UnsafePathError: if ``subpath`` escapes ``source_root``.
        FileNotFoundError: if ``subpath`` does not exist.

    Returns:
        str | None: short description of what was copied, None for an explicit subpath.
    """
    shutil.rmtree(target, ignore_errors=True)
    target.parent.mkdir(parents=True, exist_ok=True)

    if subpath:
        selected = source_root / subpath
        if not is_path_safe(source_root, selected):
            raise UnsafePathError(base=source_root, target=selected)
        if not selected.exists():
            msg = f'Subpath "{subpath}" does not exist in repository.'
            raise FileNotFoundError(msg)
        shutil.copytree(selected, target, symlinks=True)
        return None

    if profile is DocsProfile.DOCS:
        docs_root = detect_docs_root(source_root)
        if docs_root is not None:
            target.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source_root / docs_root, target / docs_root, symlinks=True)
            for readme in list_root_readmes(source_root):
                dest = target / readme
                if not dest.exists():
                    shutil.copy2(source_root / readme, dest)
            return f"{docs_root}/ + README*"
        shutil.copytree(source_root, target, symlinks=True, ignore=shutil.ignore_patterns(".git"))
        return "no docs/ found, full repository"

    shutil.copytree(source_root, target, symlinks=True, ignore=shutil.ignore_patterns(".git"))
    return "full repository"


def run_docs(settings: DocsSettings, reporter: Reporter, lock: LockStore | None = None) -> None:
    """Clone (or read) a documentation source, index it and inject the index.

    Args:
        settings (DocsSettings): command options.
        reporter (Reporter): progress channel.
        lock (LockStore | None): lock store; defaults to the project's.

    Raises:
        CommandError: if cloning, copying, indexing or injection fails.
    """
    started = time.monotonic()
    lock = lock or LockStore(settings.project)

    output = detect_output_file(settings.project, reporter) if settings.output is None else settings.output_path

    parsed = parse_source(settings.source)
    name = sanitize_name(settings.name or extract_repo_name(parsed))
    reporter.info(name)
    reporter.message(" · ".join(filter(None, [parsed.type.value, parsed.ref, parsed.subpath])))

    resolved_ref: str | None = None
    profile_info: str | None = None

    if parsed.type is SourceType.LOCAL:
        docs_path = parsed.local_path or Path(parsed.url)
        if not docs_path.is_dir():
            raise fail(f"Local path does not exist or is not a directory: {docs_path}", "source", reporter)
        commit_hash = LOCAL_COMMIT
    else:
        try:
            clone = clone_repo(parsed.url, parsed.ref or settings.ref)
        except GitCloneError as exc:
            raise fail(exc, "clone", reporter) from exc
        commit_hash = clone.commit_hash
        resolved_ref = clone.resolved_ref
        reporter.step(
            "Cloned " + " · ".join(filter(None, [resolved_ref if resolved_ref != "HEAD" else None, commit_hash[:7]])),
        )
        target = settings.engrain_base / name
        try:
            if not is_path_safe(settings.engrain_base, target):
                raise UnsafePathError(base=settings.engrain_base, target=target)
            profile_info = copy_docs(
                clone.temp_dir,
                target,
                subpath=parsed.subpath,
                profile=settings.profile,
            )
        except (UnsafePathError, OSError) as exc:
            raise fail(exc, "move", reporter) from exc
        finally:
            cleanup_temp_dir(clone.temp_dir)
        docs_path = target

    try:
        result = generate_index(docs_path, name, settings.engrain_label)
    except OSError as exc:
        raise fail(exc, "index", reporter) from exc
    reporter.step(f"Indexed {result.file_count} files · {format_size(result.size_bytes, result.size_tokens)}")
    destination = f"{settings.engrain_label}/{name}"
    reporter.message(f"{destination} ({profile_info})" if profile_info else destination)
    for warning in validate_index(result.content):
        reporter.warn(warning)

    if settings.dry_run:
        reporter.note(f"{result.content[:PREVIEW_CHARS]}...", "Dry Run Preview")
        return

    try:
        injection = inject_index(output, name, result.content, force=settings.force)
    except (EngrainError, OSError) as exc:
        raise fail(exc, "injection", reporter) from exc
    reporter.step(f"{'updated' if injection.existed else 'engrained'} {output.name}")

    try:
        lock.add(
            name,
            LockEntryData(
                source=settings.source,
                source_url=parsed.url,
                source_type=parsed.type,
                ref=resolved_ref,
                subpath=parsed.subpath,
                profile=settings.profile,
                commit_hash=commit_hash,
                index_hash=result.index_hash,
                index_size_bytes=result.size_bytes,
                index_size_tokens=result.size_tokens,
            ),
        )
    except OSError as exc:
        reporter.warn(f"lock file update failed: {exc}")

    reporter.info(f"done in {time.monotonic() - started:.1f}s")


def days_since(iso_date: str) -> int:
    updated = datetime.fromisoformat(iso_date.replace("Z", "+00:00"))
    return (datetime.now(UTC) - updated).days


def run_check(settings: CheckSettings, reporter: Reporter, lock: LockStore | None = None) -> int:
    """Compare installed docs with their upstream commit.

    Args:
        settings (CheckSettings): command options.
        reporter (Reporter): progress channel.
        lock (LockStore | None): lock store; defaults to the project's.

    Raises:
        CommandError: if ``settings.doc_name`` is not installed.

    Returns:
        int: number of outdated docs.
    """
    lock = lock or LockStore(settings.project)
    docs = lock.get_all()
    if not docs:
        reporter.warn("no docs installed for this project")
        reporter.message("Run 'engrain docs <repository-url>' to install documentation.")
        return 0

    if settings.doc_name is not None:
        if settings.doc_name not in docs:
            reporter.error(f'doc "{settings.doc_name}" not found')
            reporter.message("Available docs:")
            for available in docs:
                reporter.message(f"  - {available}")
            msg = f'Doc "{settings.doc_name}" not found'
            raise CommandError(msg)
        docs = {settings.doc_name: docs[settings.doc_name]}

    reporter.step(f"{len(docs)} doc(s) found")
    outdated = 0
    for name, entry in docs.items():
        if entry.is_local:
            reporter.step(f"{name} local, skipped")
            continue
        url = entry.source_url or parse_source(entry.source).url
        try:
            latest = fetch_latest_commit_hash(url, entry.ref)
        except EngrainError as exc:
            reporter.step(f"{name} error")
            reporter.message(str(exc))
            continue
        if latest != entry.commit_hash:
            outdated += 1
            reporter.step(f"{name} outdated")
            reporter.message(f"last updated {days_since(entry.updated_at)} days ago")
            update = f"engrain docs {entry.source} --name {name}"
            if entry.ref:
                update += f" --ref {entry.ref}"
            reporter.message(f"{update} --force")
        else:
            reporter.step(f"{name} up to date")

    summary = f"{len(docs)} doc(s) checked, " + (f"{outdated} outdated" if outdated else "all up to date")
    reporter.info(summary)
    return outdated


def run_remove(settings: RemoveSettings, reporter: Reporter, lock: LockStore | None = None) -> None:
    """Remove one doc block from the output file, then from the lock file.

    Raises:
        CommandError: if the block is not found or the file cannot be written.
    """
    lock = lock or LockStore(settings.project)
    output = settings.output_path
    reporter.message(f"removing {settings.doc_name} from {output.name}...")
    try:
        removed = remove_block(output, settings.doc_name, drop_empty_wrapper=settings.prune)
    except OSError as exc:
        raise fail(exc, "removal", reporter) from exc
    if not removed:
        reporter.error(f'doc "{settings.doc_name}" not found in {output.name}')
        msg = f'Doc "{settings.doc_name}" not found'
        raise CommandError(msg)
    reporter.step(f"removed {output.name}")

    try:
        lock.remove(settings.doc_name)
        reporter.step("updated lock file")
    except OSError as exc:
        reporter.warn(f"lock file update failed: {exc}")


def run_clear(settings: ClearSettings, reporter: Reporter, lock: LockStore | None = None) -> int:
    """Remove the whole wrapper from the output file and empty the lock file.

    Without ``force`` nothing is touched: the command only explains what it would do.

    Raises:
        CommandError: when ``force`` is not set, or the file cannot be written.

    Returns:
        int: number of lock entries that were cleared.
    """
    lock = lock or LockStore(settings.project)
    output = settings.output_path
    if not output.exists():
        reporter.warn(f"{output.name} doesn't exist, nothing to clear")
        return 0
    if not settings.force:
        reporter.warn(f"this will remove all engrain content from {output.name}")
        reporter.message("Use --force to skip this confirmation")
        msg = "Operation cancelled. Use --force to proceed."
        raise CommandError(msg)

    try:
        removed = remove_wrapper(output)
    except OSError as exc:
        raise fail(exc, "removal", reporter) from exc
    if removed:
        reporter.step(f"removed {output.name}")
    else:
        reporter.warn(f"no engrain wrapper found in {output.name}")

    try:
        count = lock.clear()
        reporter.step("cleared lock file")
    except OSError as exc:
        reporter.warn(f"lock file clear failed: {exc}")
        return 0
    return count


def run_sync(settings: SyncSettings, reporter: Reporter, lock: LockStore | None = None) -> tuple[int, int, int]:
    """Rebuild every remote doc recorded in the lock file and force-inject it.

    Args:
        settings (SyncSettings): command options.
        reporter (Reporter): progress channel.
        lock (LockStore | None): lock store; defaults to the project's.

    Raises:
        CommandError: if at least one doc failed to sync.

    Returns:
        tuple[int, int, int]: synced, skipped and failed counts.
    """
    started = time.monotonic()
    lock = lock or LockStore(settings.project)
    docs = lock.get_all()
    if not docs:
        reporter.warn("no docs in lock file")
        reporter.message("Run 'engrain docs <repository-url>' to install documentation.")
        return 0, 0, 0

    reporter.step(f"{len(docs)} doc(s) found")
    output = settings.output_path
    synced = skipped = failed = 0
    for name, entry in docs.items():
        reporter.message("")
        reporter.info(name)
        if entry.is_local:
            reporter.step("skipped (local source)")
            skipped += 1
            continue
        try:
            url = entry.source_url or parse_source(entry.source).url
            clone = clone_repo(url, entry.ref)
            try:
                reporter.step(f"cloned {clone.commit_hash[:7]}")
                target = settings.engrain_base / name
                copy_docs(
                    clone.temp_dir,
                    target,
                    subpath=entry.subpath,
                    profile=entry.profile or DocsProfile.REPO,
                )
            finally:
                cleanup_temp_dir(clone.temp_dir)
            result = generate_index(target, name, settings.engrain_label)
            reporter.step(f"{result.file_count} files · {format_size(result.size_bytes, result.size_tokens)}")
            inject_index(output, name, result.content, force=True)
            reporter.step(f"injected {output.name}")
            lock.add(
                name,
                entry.model_copy(
                    update={
                        "commit_hash": clone.commit_hash,
                        "index_hash": result.index_hash,
                        "index_size_bytes": result.size_bytes,
                        "index_size_tokens": result.size_tokens,
                    },
                ),
            )
            synced += 1
        except (EngrainError, OSError) as exc:
            reporter.step(f"error {exc}")
            logger.error("sync_failed", name=name, error=str(exc))
            failed += 1

    reporter.info(
        f"done · {synced} synced, {skipped} skipped, {failed} errors · {time.monotonic() - started:.1f}s",
    )
    if failed:
        msg = "Some docs failed to sync"
        raise CommandError(msg)
    return synced, skipped, failed
