"""
engrain — Inject documentation indexes into AGENTS.md / CLAUDE.md.

Overview
--------
Coding agents read AGENTS.md (or CLAUDE.md) before every task. ``engrain``
copies the documentation of a library into ``.engrain/<name>``, builds a
compact pipe-delimited index of its files and injects that index into the
agent file, inside a single ``<engrain>`` wrapper holding one
``<docs name="...">`` block per library. Installed docs are recorded in
``.engrain-lock.json`` so they can be checked and re-synced later.

Usage
-----
    engrain docs vercel/next.js
    engrain docs https://github.com/owner/repo/tree/main/docs --name repo-docs --force
    engrain docs ./local/docs --dry-run
    engrain check
    engrain sync
    engrain remove next.js --prune
    engrain clear --force
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import TYPE_CHECKING, Any

from engrain import __version__
from engrain.commands import run_check, run_clear, run_docs, run_remove, run_sync
from engrain.exceptions import CommandError, EngrainError, kind_of
from engrain.logging import configure_log_file, logger
from engrain.reporting import ConsoleReporter
from engrain.settings import (
    CheckSettings,
    ClearSettings,
    DocsProfile,
    DocsSettings,
    RemoveSettings,
    SyncSettings,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pydantic import BaseModel

    from engrain.reporting import Reporter

SETTINGS_BY_COMMAND: dict[str, type[BaseModel]] = {
    "docs": DocsSettings,
    "check": CheckSettings,
    "remove": RemoveSettings,
    "clear": ClearSettings,
    "sync": SyncSettings,
}


def _add_common(p: argparse.ArgumentParser, *, engrain_dir: bool = False) -> None:
    p.add_argument("--project", type=Path, default=None, help="Project root (default: current directory).")
    p.add_argument("--output", type=Path, default=None, help="Target file (default: AGENTS.md).")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    if engrain_dir:
        p.add_argument("--engrain-dir", type=str, default=None, help="Docs directory (default: .engrain).")


def build_parser() -> argparse.ArgumentParser:
    """Build the ``engrain`` parser and its subcommands.

    Returns:
        argparse.ArgumentParser: Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="engrain",
        description="Inject documentation indexes into AGENTS.md / CLAUDE.md.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    docs = sub.add_parser("docs", help="Index a documentation source and inject it.")
    docs.add_argument("source", help="Repository URL, owner/repo shorthand or local path.")
    docs.add_argument("--name", type=str, default=None, help="Doc name (default: repository name).")
    docs.add_argument("--ref", type=str, default=None, help="Branch or tag.")
    docs.add_argument(
        "--profile",
        type=DocsProfile,
        choices=list(DocsProfile),
        default=DocsProfile.DOCS,
        help="docs: docs folder + README (default); repo: whole repository.",
    )
    docs.add_argument("--dry-run", action="store_true", help="Preview the index, do not write.")
    docs.add_argument("--force", action="store_true", help="Overwrite an existing doc block.")
    _add_common(docs, engrain_dir=True)

    check = sub.add_parser("check", help="Check installed docs for upstream updates.")
    check.add_argument("doc_name", nargs="?", default=None, help="Only check this doc.")
    _add_common(check)

    remove = sub.add_parser("remove", help="Remove one doc block.")
    remove.add_argument("doc_name", help="Doc to remove.")
    remove.add_argument("--prune", action="store_true", help="Remove the wrapper once it holds no doc.")
    _add_common(remove)

    clear = sub.add_parser("clear", help="Remove every doc block and the wrapper.")
    clear.add_argument("--force", action="store_true", help="Actually clear.")
    _add_common(clear)

    sync = sub.add_parser("sync", help="Rebuild every doc recorded in the lock file.")
    _add_common(sync, engrain_dir=True)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> tuple[str, Any]:
    """Parse ``argv`` into a command name and its settings.

    Options left unset on the command line are omitted, so environment and
    ``.env`` defaults apply.

    Args:
        argv (Sequence[str] | None): Optional CLI arguments.

    Returns:
        tuple[str, Any]: command name and its settings model.
    """
    args = vars(build_parser().parse_args(argv))
    command = args.pop("command")
    values = {k: v for k, v in args.items() if v is not None}
    return command, SETTINGS_BY_COMMAND[command](**values)


def dispatch(command: str, settings: Any, reporter: Reporter) -> int:  # noqa: ANN401
    """Run ``command`` and map its outcome to an exit code."""
    match command:
        case "docs":
            run_docs(settings, reporter)
        case "check":
            run_check(settings, reporter)
        case "remove":
            run_remove(settings, reporter)
        case "clear":
            run_clear(settings, reporter)
        case "sync":
            run_sync(settings, reporter)
    return 0


def main(argv: Sequence[str] | None = None, reporter: Reporter | None = None) -> int:
    """Entry point of the ``engrain`` command.

    Args:
        argv (Sequence[str] | None): Optional CLI arguments.
        reporter (Reporter | None): progress channel (stderr console by default).

    Returns:
        int: Process exit code.
    """
    command, settings = parse_args(argv)
    if settings.log_file:
        configure_log_file(settings.log_file)
    reporter = reporter or ConsoleReporter()
    logger.info("command_start", command=command)
    try:
        return dispatch(command, settings, reporter)
    except CommandError as exc:
        logger.info("command_failed", command=command, error=str(exc))
        return exc.exit_code
    except (EngrainError, OSError) as exc:
        reporter.error(str(exc))
        logger.error("command_error", command=command, kind=str(kind_of(exc)), error=str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
