from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

from engrain.logging import logger

TEMP_PREFIX = ".engrain-tmp-"
TEMP_SUFFIX = ".tmp"


def atomic_write(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` through a temporary file in the same directory.

    The temporary file lives next to the target so the final :func:`os.replace`
    never crosses a filesystem boundary. On any failure the temporary file is
    removed and the original error is re-raised; the target is left untouched.

    Args:
        path (Path): target file.
        content (str): full new content, written as UTF-8.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, dir=str(path.parent))
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        if path.exists():
            with contextlib.suppress(OSError):
                tmp.chmod(path.stat().st_mode & 0o777)
        tmp.replace(path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink(missing_ok=True)
        raise
    logger.info("atomic_write", path=str(path), size=len(content))


def read_text_or_none(path: Path) -> str | None:
    """Read a UTF-8 file, returning None when it does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
