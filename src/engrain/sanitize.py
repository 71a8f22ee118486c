from __future__ import annotations

import re
from pathlib import Path

_NON_NAME_CHARS = re.compile(r"[^a-z0-9._]+")
_EDGE_CHARS = re.compile(r"^[.\-]+|[.\-]+$")
_WINDOWS_ABSOLUTE = re.compile(r"^[a-zA-Z]:[/\\]")

MAX_NAME_LENGTH = 255
FALLBACK_NAME = "unnamed-doc"


def sanitize_name(name: str) -> str:
    """Turn an arbitrary name into a safe directory name and block identifier.

    Lowercases, collapses every run of characters outside ``[a-z0-9._]`` into a
    hyphen and strips leading/trailing dots and hyphens, so the result can never
    be a relative path component or contain ``"`` or ``>``.

    Args:
        name (str): raw name from user input or a URL.

    Returns:
        str: the sanitized name, ``"unnamed-doc"`` if nothing is left.

    Examples:
        >>> sanitize_name("../etc/passwd")
        'etc-passwd'
        >>> sanitize_name("@scope/package")
        'scope-package'
    """
    sanitized = _NON_NAME_CHARS.sub("-", name.lower())
    sanitized = _EDGE_CHARS.sub("", sanitized)
    return sanitized[:MAX_NAME_LENGTH] or FALLBACK_NAME


def is_path_safe(base: Path | str, target: Path | str) -> bool:
    """Check that ``target`` resolves to ``base`` or a path below it.

    Args:
        base (Path | str): trusted base directory.
        target (Path | str): path to validate.

    Returns:
        bool: True if ``target`` stays within ``base``.
    """
    base_resolved = Path(base).resolve()
    target_resolved = Path(target).resolve()
    return target_resolved == base_resolved or target_resolved.is_relative_to(base_resolved)


def is_absolute_path(path: str) -> bool:
    """Detect absolute paths in POSIX, Windows and Git Bash (``/c/...``) forms."""
    if not path:
        return False
    if path.startswith("/"):
        return True
    return len(path) >= 2 and path[0].isalpha() and path[1] == ":"  # noqa: PLR2004


def is_local_path(value: str) -> bool:
    """Tell whether a source string designates a local directory rather than a repository."""
    return (
        is_absolute_path(value)
        or value.startswith(("./", "../"))
        or value in {".", ".."}
        or bool(_WINDOWS_ABSOLUTE.match(value))
    )
