"""Deterministic pipe-delimited documentation index.

Format::

    [<name> Docs Index]|root: <root_dir>/<name>|<instruction>|<dir>:{<file>,<file>}|...

The first three sections are free text. Every following section lists the
files of one directory. Directory and file names are escaped with
:func:`engrain.codec.escape_token`, so the same file list always renders to the
same bytes and can be split back without ambiguity.
"""

from __future__ import annotations

import hashlib
import os
from collections import defaultdict
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from engrain.codec import (
    ITEM_DELIMITER,
    KEY_DELIMITER,
    LIST_CLOSE,
    LIST_OPEN,
    SECTION_DELIMITER,
    escape_token,
    find_unescaped,
    is_escaped,
    split_unescaped,
    unescape_token,
)
from engrain.discover import discover_files
from engrain.logging import logger
from engrain.size import calculate_size

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from pathlib import Path

ROOT_DIRECTORY = "."
HEADER_SECTIONS = 3
PREVIEW_CHARS = 50
DEFAULT_ENGRAIN_DIR = "./.engrain"


class DirectoryGroup(BaseModel):
    """Files of one directory, as rendered in one index section."""

    model_config = ConfigDict(frozen=True)

    directory: str = Field(..., description="Posix directory path, '.' for the root")
    files: tuple[str, ...] = Field(default=(), description="Sorted file basenames")


class IndexResult(BaseModel):
    """Rendered index and its measurements.

    Attributes:
        content: The serialized index.
        size_bytes: UTF-8 size of ``content``.
        size_tokens: Estimated token count of ``content``.
        file_count: Number of files that were indexed.
        index_hash: SHA-256 hex digest of ``content``, used for change detection.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    size_bytes: int = Field(..., ge=0)
    size_tokens: int = Field(..., ge=0)
    file_count: int = Field(..., ge=0)
    index_hash: str


def split_relative_path(relative_path: str) -> tuple[str, str]:
    """Split a relative path into a posix directory (``"."`` for the root) and a basename.

    Args:
        relative_path (str): path relative to the indexed root, platform separators allowed.

    Returns:
        tuple[str, str]: ``(directory, basename)``.
    """
    directory, basename = os.path.split(relative_path.replace("\\", "/"))
    return directory or ROOT_DIRECTORY, basename


def group_by_directory(relative_paths: Iterable[str]) -> list[DirectoryGroup]:
    """Group files by directory, sorting directories and files by code point.

    Args:
        relative_paths (Iterable[str]): discovered relative paths, in any order.

    Returns:
        list[DirectoryGroup]: one group per directory, sorted.
    """
    groups: defaultdict[str, list[str]] = defaultdict(list)
    for rel in relative_paths:
        directory, basename = split_relative_path(rel)
        groups[directory].append(basename)
    return [DirectoryGroup(directory=d, files=tuple(sorted(groups[d]))) for d in sorted(groups)]


def instruction_for(name: str) -> str:
    """Return the instruction line placed after the index root."""
    return (
        f"REWIRE. What you remember about {name} is WRONG for this project. "
        "Always search in this index and read before any task"
    )


def render_group(group: DirectoryGroup) -> str:
    """Render one ``dir:{file,file}`` section, skipping empty file names."""
    files = ITEM_DELIMITER.join(escape_token(f) for f in group.files if f)
    return f"{escape_token(group.directory)}{KEY_DELIMITER}{LIST_OPEN}{files}{LIST_CLOSE}"


def build_index(relative_paths: Iterable[str], name: str, root_dir: str) -> str:
    """Serialize a file list into the pipe-delimited index.

    ``name`` and ``root_dir`` are written verbatim in the header sections. The
    output only depends on the multiset of paths, never on their order.

    Args:
        relative_paths (Iterable[str]): discovered relative paths.
        name (str): documentation name (block name).
        root_dir (str): engrain directory the docs were copied under.

    Returns:
        str: the serialized index.
    """
    header = f"[{name} Docs Index]"
    root = f"root: {root_dir}/{name}"
    sections = [render_group(group) for group in group_by_directory(relative_paths)]
    return SECTION_DELIMITER.join([header, root, instruction_for(name), *sections])


def _preview(section: str) -> str:
    return f"{section[:PREVIEW_CHARS]}..."


def validate_index(content: str) -> list[str]:
    """Check the structure of an index and return human-readable warnings.

    Never raises and never modifies ``content``. The three header sections are
    not checked. Each other section must look like ``dir:{...}`` with an
    unescaped ``:`` directly followed by ``{`` and an unescaped closing ``}``.

    Args:
        content (str): serialized index.

    Returns:
        list[str]: warnings, empty when the index is well formed.
    """
    warnings: list[str] = []
    sections = split_unescaped(content, SECTION_DELIMITER)
    for section in sections[HEADER_SECTIONS:]:
        if not section:
            continue
        colon = find_unescaped(section, KEY_DELIMITER)
        if colon == -1 or section[colon + 1 : colon + 2] != LIST_OPEN:
            warnings.append(f"Malformed section: {_preview(section)}")
            continue
        close = len(section) - 1
        if section[close] != LIST_CLOSE or is_escaped(section, close):
            warnings.append(f"Malformed section: {_preview(section)}")
            continue
        tokens = split_unescaped(section[colon + 2 : close], ITEM_DELIMITER)
        if any(not token for token in tokens):
            warnings.append(f"Empty filename token detected in section: {_preview(section)}")

    if len(sections) <= HEADER_SECTIONS:
        warnings.append("Index is empty (no files discovered)")
    return warnings


def parse_index(content: str) -> list[DirectoryGroup]:
    """Decode the directory sections of an index back into unescaped groups.

    Sections that :func:`validate_index` would report as malformed are skipped.
    ``"{}"`` (a directory without file names) yields a group with no files.

    Args:
        content (str): serialized index.

    Returns:
        list[DirectoryGroup]: groups in document order.
    """
    groups: list[DirectoryGroup] = []
    for section in split_unescaped(content, SECTION_DELIMITER)[HEADER_SECTIONS:]:
        colon = find_unescaped(section, KEY_DELIMITER)
        close = len(section) - 1
        if (
            colon == -1
            or section[colon + 1 : colon + 2] != LIST_OPEN
            or close <= colon + 1
            or section[close] != LIST_CLOSE
            or is_escaped(section, close)
        ):
            continue
        body = section[colon + 2 : close]
        files = tuple(unescape_token(t) for t in split_unescaped(body, ITEM_DELIMITER) if t) if body else ()
        groups.append(DirectoryGroup(directory=unescape_token(section[:colon]), files=files))
    return groups


def hash_index(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def generate_index(
    root_path: Path,
    name: str,
    engrain_dir: str = DEFAULT_ENGRAIN_DIR,
    on_file: Callable[[str], None] | None = None,
) -> IndexResult:
    """Discover files under ``root_path`` and build their index.

    Args:
        root_path (Path): directory holding the documentation copy.
        name (str): documentation name.
        engrain_dir (str): engrain directory as it should appear in the root section.
        on_file (Callable[[str], None] | None): progress callback, one call per discovered file.

    Returns:
        IndexResult: the index with its sizes and hash.
    """
    files = discover_files(root_path, on_file=on_file)
    content = build_index((f.relative_path for f in files), name, engrain_dir)
    size_bytes, size_tokens = calculate_size(content)
    result = IndexResult(
        content=content,
        size_bytes=size_bytes,
        size_tokens=size_tokens,
        file_count=len(files),
        index_hash=hash_index(content),
    )
    logger.info("generate_index", name=name, files=result.file_count, size_bytes=size_bytes)
    return result
