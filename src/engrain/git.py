"""Git collaborators: shallow clone and remote ref resolution.

Everything goes through the ``git`` executable; nothing here touches the
index or the target document.
"""

from __future__ import annotations

import re
import shutil
import subprocess  # noqa: S404
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple

from engrain.exceptions import GitCloneError, GitCommandError
from engrain.logging import logger
from engrain.sanitize import is_path_safe

if TYPE_CHECKING:
    from collections.abc import Sequence

CLONE_TIMEOUT_S = 60
FETCH_TIMEOUT_S = 10
TEMP_DIR_PREFIX = "engrain-"

_AUTH_MARKERS = (
    "Authentication failed",
    "could not read Username",
    "Permission denied",
    "Repository not found",
)
_SYMREF_PATTERN = re.compile(r"ref:\s+(refs/heads/\S+)")


class CloneResult(NamedTuple):
    temp_dir: Path
    commit_hash: str
    resolved_ref: str


class RemoteRef(NamedTuple):
    hash: str
    ref_name: str


def run_git(args: Sequence[str], *, cwd: Path | None = None, timeout: float | None = None) -> str:
    """Run ``git`` with ``args`` and return its stdout.

    Args:
        args (Sequence[str]): arguments after ``git``.
        cwd (Path | None): working directory.
        timeout (float | None): seconds before the process is killed.

    Raises:
        GitCommandError: on a non-zero exit status.
        subprocess.TimeoutExpired: when ``timeout`` elapses.

    Returns:
        str: captured stdout.
    """
    cmd = ["git", *args]
    out = subprocess.run(  # noqa: S603
        cmd,
        cwd=str(cwd) if cwd else None,
        text=True,
        capture_output=True,
        check=False,
        timeout=timeout,
    )
    if out.returncode != 0:
        raise GitCommandError(
            command=" ".join(cmd),
            returncode=out.returncode,
            stdout=out.stdout,
            stderr=out.stderr,
        )
    return out.stdout


def _clone_error(url: str, error: Exception) -> GitCloneError:
    if isinstance(error, subprocess.TimeoutExpired):
        return GitCloneError(
            url=url,
            reason=(
                f"Clone timed out after {CLONE_TIMEOUT_S}s. This often happens with private repos "
                "that require authentication.\n"
                "  Ensure you have access and your SSH keys or credentials are configured:\n"
                "  - For SSH: ssh-add -l (to check loaded keys)\n"
                "  - For HTTPS: gh auth status (if using GitHub CLI)"
            ),
        )
    detail = str(error)
    if any(marker in detail for marker in _AUTH_MARKERS):
        return GitCloneError(
            url=url,
            reason=(
                f"Authentication failed for {url}.\n"
                "  - For private repos, ensure you have access\n"
                "  - For SSH: Check your keys with 'ssh -T git@github.com'\n"
                "  - For HTTPS: Run 'gh auth login' or configure git credentials"
            ),
        )
    return GitCloneError(url=url, reason=f"Failed to clone {url}: {detail}")


def clone_repo(url: str, ref: str | None = None) -> CloneResult:
    """Shallow-clone ``url`` into a fresh temporary directory.

    The temporary directory is removed if anything fails.

    Args:
        url (str): cloneable URL.
        ref (str | None): branch or tag; the remote default branch when None.

    Raises:
        GitCloneError: on timeout, authentication failure or any other git error.

    Returns:
        CloneResult: temporary directory, HEAD commit and the ref that was checked out.
    """
    temp_dir = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX))
    args = ["clone", "--depth", "1"]
    if ref:
        args += ["--branch", ref]
    args += [url, str(temp_dir)]
    try:
        run_git(args, timeout=CLONE_TIMEOUT_S)
        commit_hash = run_git(["rev-parse", "HEAD"], cwd=temp_dir).strip() or "unknown"
        resolved_ref = ref
        if not resolved_ref:
            try:
                resolved_ref = run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=temp_dir).strip()
            except GitCommandError:
                resolved_ref = None
    except (GitCommandError, subprocess.TimeoutExpired, OSError) as exc:
        shutil.rmtree(temp_dir, ignore_errors=True)
        raise _clone_error(url, exc) from exc
    logger.info("clone_repo", url=url, ref=resolved_ref, commit=commit_hash)
    return CloneResult(temp_dir=temp_dir, commit_hash=commit_hash, resolved_ref=resolved_ref or "HEAD")


def cleanup_temp_dir(path: Path) -> None:
    """Delete a clone directory, refusing anything outside the system temp directory.

    Raises:
        ValueError: if ``path`` is not inside the temp directory.
    """
    if not is_path_safe(tempfile.gettempdir(), path):
        msg = f"Attempted to clean up directory outside of temp directory: {path}"
        raise ValueError(msg)
    shutil.rmtree(path, ignore_errors=True)


def parse_ls_remote(output: str) -> list[RemoteRef]:
    """Parse ``git ls-remote`` output (``<hash>\\t<ref>`` per line)."""
    refs: list[RemoteRef] = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2 and not parts[0].startswith("ref:"):  # noqa: PLR2004
            refs.append(RemoteRef(hash=parts[0], ref_name=parts[1]))
    return refs


def _resolve_head(url: str) -> tuple[str | None, str | None]:
    """Return ``(hash, None)`` or ``(None, refs/heads/<branch>)`` for the remote HEAD."""
    output = run_git(["ls-remote", "--symref", url, "HEAD"], timeout=FETCH_TIMEOUT_S)
    for line in output.splitlines():
        if match := _SYMREF_PATTERN.match(line.strip()):
            return None, match.group(1)
    for remote in parse_ls_remote(output):
        if remote.ref_name == "HEAD":
            return remote.hash, None
    msg = "Could not determine default branch"
    raise LookupError(msg)


def _resolve_named_ref(url: str, ref: str) -> str:
    head_ref = ref if ref.startswith("refs/heads/") else f"refs/heads/{ref}"
    tag_ref = ref if ref.startswith("refs/tags/") else f"refs/tags/{ref}"
    tag_deref = f"{tag_ref}^{{}}"

    heads = parse_ls_remote(run_git(["ls-remote", "--heads", url, head_ref], timeout=FETCH_TIMEOUT_S))
    for remote in heads:
        if remote.ref_name == head_ref:
            return remote.hash

    tags = parse_ls_remote(run_git(["ls-remote", "--tags", url, tag_ref, tag_deref], timeout=FETCH_TIMEOUT_S))
    by_name = {remote.ref_name: remote.hash for remote in tags}
    if tag_deref in by_name:
        return by_name[tag_deref]
    if tag_ref in by_name:
        return by_name[tag_ref]

    anything = parse_ls_remote(run_git(["ls-remote", url, ref], timeout=FETCH_TIMEOUT_S))
    if anything:
        return anything[0].hash
    msg = "Ref not found in remote"
    raise LookupError(msg)


def fetch_latest_commit_hash(url: str, ref: str | None = None) -> str:
    """Resolve the commit a remote ref currently points to.

    Branches win over tags; annotated tags are dereferenced. Without ``ref``,
    the remote HEAD is followed to its branch.

    Args:
        url (str): remote URL.
        ref (str | None): branch or tag name, or ``"HEAD"``.

    Raises:
        GitCommandError: if the remote cannot be queried or the ref is unknown.

    Returns:
        str: commit hash.
    """
    try:
        resolved = ref
        if not resolved or resolved == "HEAD":
            head_hash, resolved = _resolve_head(url)
            if head_hash is not None:
                return head_hash
        return _resolve_named_ref(url, resolved or "HEAD")
    except (GitCommandError, subprocess.TimeoutExpired, LookupError) as exc:
        raise GitCommandError(
            command=f"git ls-remote {url}",
            returncode=getattr(exc, "returncode", -1),
            stdout="",
            stderr=f"Failed to fetch latest commit hash: {exc}",
        ) from exc
