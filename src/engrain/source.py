from __future__ import annotations

import re
from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from engrain.sanitize import is_local_path


class SourceType(StrEnum):
    """Where a documentation source comes from."""

    GITHUB = auto()
    GITLAB = auto()
    GIT = auto()
    LOCAL = auto()


class ParsedSource(BaseModel):
    """Structured view of a repository URL, shorthand or local path.

    Attributes:
        type: Kind of source.
        url: Cloneable URL, or the resolved directory for local sources.
        ref: Branch or tag found in the URL (``/tree/<ref>/...``).
        subpath: Directory inside the repository found in the URL.
        owner: Repository owner (GitHub only).
        repo: Repository name (GitHub only).
        local_path: Resolved directory for local sources.
    """

    model_config = ConfigDict(frozen=True)

    type: SourceType
    url: str
    ref: str | None = None
    subpath: str | None = None
    owner: str | None = None
    repo: str | None = None
    local_path: Path | None = Field(default=None, description="Resolved local directory")


_GITHUB_TREE = re.compile(r"github\.com/([^/]+)/([^/]+)/tree/([^/]+)/(.+)")
_GITHUB_REPO = re.compile(r"github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$")
_SHORTHAND = re.compile(r"^([^/]+)/([^/@]+)$")
_GITHUB_SSH = re.compile(r"git@github\.com:([^/]+)/([^/]+?)(?:\.git)?$")
_GITLAB = re.compile(r"gitlab\.com/(.+?)(?:\.git)?/?$")
_URL_TAIL = re.compile(r"/([^/]+?)(?:\.git)?$")


def _strip_git(repo: str) -> str:
    return repo.removesuffix(".git")


def _github(owner: str, repo: str, **extra: str) -> ParsedSource:
    clean = _strip_git(repo)
    return ParsedSource(
        type=SourceType.GITHUB,
        url=f"https://github.com/{owner}/{clean}.git",
        owner=owner,
        repo=clean,
        **extra,
    )


def parse_source(value: str) -> ParsedSource:
    """Parse a repository URL or local path.

    Supported forms, tried in order:

    - local paths: ``./docs``, ``../x``, ``/abs/path``, ``C:\\docs``
    - GitHub tree URLs: ``https://github.com/owner/repo/tree/<ref>/<subpath>``
    - GitHub repository URLs (with or without ``.git``)
    - GitHub shorthand: ``owner/repo``
    - GitHub SSH: ``git@github.com:owner/repo.git``
    - GitLab URLs with nested groups
    - anything else is treated as a plain git URL (``.git`` appended if missing)

    Args:
        value (str): user-supplied source.

    Returns:
        ParsedSource: the parsed source.
    """
    if is_local_path(value):
        resolved = Path(value).resolve()
        return ParsedSource(type=SourceType.LOCAL, url=str(resolved), local_path=resolved)

    if match := _GITHUB_TREE.search(value):
        owner, repo, ref, subpath = match.groups()
        return _github(owner, repo, ref=ref, subpath=subpath.rstrip("/"))

    if match := _GITHUB_REPO.search(value):
        return _github(*match.groups())

    if (match := _SHORTHAND.match(value)) and ":" not in value and not value.startswith("."):
        return _github(*match.groups())

    if match := _GITHUB_SSH.search(value):
        owner, repo = match.groups()
        clean = _strip_git(repo)
        return ParsedSource(
            type=SourceType.GITHUB,
            url=f"git@github.com:{owner}/{clean}.git",
            owner=owner,
            repo=clean,
        )

    if (match := _GITLAB.search(value)) and "/" in match.group(1):
        return ParsedSource(type=SourceType.GITLAB, url=f"https://gitlab.com/{match.group(1)}.git")

    url = value if value.endswith(".git") else f"{value}.git"
    return ParsedSource(type=SourceType.GIT, url=url)


def extract_repo_name(parsed: ParsedSource) -> str:
    """Derive a repository name used for the block name and target directory."""
    if parsed.repo:
        return parsed.repo
    if parsed.local_path is not None:
        return parsed.local_path.name or "unnamed-repo"
    if match := _URL_TAIL.search(parsed.url):
        return match.group(1)
    return "unnamed-repo"
