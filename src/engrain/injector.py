"""Idempotent injection of documentation indexes into AGENTS.md-like files.

A target file holds at most one wrapper region, which contains one named
block per documentation index::

    <engrain important="STOP! ...">

    <docs name="next-js">
    [next-js Docs Index]|...
    </docs>

    </engrain>

Anything outside the wrapper belongs to the user and is never rewritten. Every
file operation re-reads the whole file, transforms the text and writes it back
atomically.
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict

from engrain.exceptions import AlreadyExistsError, MissingWrapperError
from engrain.fs import atomic_write, read_text_or_none
from engrain.logging import logger
from engrain.size import calculate_size

WRAPPER_INSTRUCTION = (
    "STOP! Prefer retrieval-led reasoning from local docs and skills over "
    "pre-training-led reasoning for any tasks"
)
WRAPPER_START_PREFIX = '<engrain important="'
WRAPPER_START = f'{WRAPPER_START_PREFIX}{WRAPPER_INSTRUCTION}">'
WRAPPER_END = "</engrain>"
BLOCK_START_PREFIX = '<docs name="'
BLOCK_END = "</docs>"


class Span(NamedTuple):
    """Half-open ``[start, end)`` character range, end marker included."""

    start: int
    end: int


class InjectionResult(BaseModel):
    """Outcome of :func:`inject_index`."""

    model_config = ConfigDict(frozen=True)

    path: Path
    name: str
    existed: bool
    size_bytes: int
    size_tokens: int


def block_start_marker(name: str) -> str:
    """Return the opening ``<docs name="...">`` marker of block ``name``."""
    return f'{BLOCK_START_PREFIX}{name}">'


def find_wrapper(content: str) -> Span | None:
    """Locate the wrapper: first start marker, then the first end marker after it.

    Args:
        content (str): document text.

    Returns:
        Span | None: the wrapper span, or None if either marker is missing.
    """
    start = content.find(WRAPPER_START_PREFIX)
    if start == -1:
        return None
    end = content.find(WRAPPER_END, start)
    if end == -1:
        return None
    return Span(start, end + len(WRAPPER_END))


def find_block(content: str, name: str, within: Span | None = None) -> Span | None:
    """Locate the block named ``name``.

    The start marker is matched with its closing quote and bracket, so ``"a"``
    never matches ``<docs name="ab">``.

    Args:
        content (str): document text.
        name (str): block name.
        within (Span | None): restrict the search to this span (usually the wrapper).

    Returns:
        Span | None: the block span, or None if absent or unterminated.
    """
    lo, hi = within if within is not None else (0, len(content))
    start = content.find(block_start_marker(name), lo, hi)
    if start == -1:
        return None
    end = content.find(BLOCK_END, start, hi)
    if end == -1:
        return None
    return Span(start, end + len(BLOCK_END))


def list_block_names(content: str) -> list[str]:
    """Names of the blocks inside the wrapper, in document order."""
    wrapper = find_wrapper(content)
    if wrapper is None:
        return []
    names: list[str] = []
    pos = wrapper.start
    while (start := content.find(BLOCK_START_PREFIX, pos, wrapper.end)) != -1:
        name_start = start + len(BLOCK_START_PREFIX)
        name_end = content.find('">', name_start, wrapper.end)
        if name_end == -1:
            break
        names.append(content[name_start:name_end])
        end = content.find(BLOCK_END, name_end, wrapper.end)
        if end == -1:
            break
        pos = end + len(BLOCK_END)
    return names


def render_block(name: str, index: str) -> str:
    """Wrap ``index`` in the start and end markers of block ``name``."""
    return f"{block_start_marker(name)}\n{index}\n{BLOCK_END}"


def render_wrapper(first_block: str) -> str:
    """Render a new wrapper holding a single block."""
    return f"{WRAPPER_START}\n\n{first_block}\n\n{WRAPPER_END}\n"


def inject_block(
    content: str,
    name: str,
    block: str,
    *,
    force: bool,
    path: Path,
) -> tuple[str, bool]:
    """Insert or replace a rendered block in ``content``.

    - blank content (whitespace only): a new wrapper holding ``block`` is created;
    - no wrapper but other content: :class:`MissingWrapperError`;
    - block already present: :class:`AlreadyExistsError` unless ``force``, in
      which case the block span is replaced in place;
    - otherwise the block is inserted just before the wrapper end marker,
      after a blank line.

    Args:
        content (str): current document text.
        name (str): block name.
        block (str): rendered block, markers included (see :func:`render_block`).
        force (bool): replace an existing block instead of failing.
        path (Path): document path, used in error messages only.

    Raises:
        MissingWrapperError: if the document has content but no wrapper.
        AlreadyExistsError: if the block exists and ``force`` is False.

    Returns:
        tuple[str, bool]: new content and whether the block already existed.
    """
    wrapper = find_wrapper(content)
    if wrapper is None:
        if not content.strip():
            return render_wrapper(block), False
        raise MissingWrapperError(path=path)

    existing = find_block(content, name, within=wrapper)
    if existing is not None:
        if not force:
            raise AlreadyExistsError(path=path, name=name)
        return content[: existing.start] + block + content[existing.end :], True

    close = wrapper.end - len(WRAPPER_END)
    before = content[:close]
    if before.endswith("\n\n"):
        separator = ""
    elif before.endswith("\n"):
        separator = "\n"
    else:
        separator = "\n\n"
    return f"{before}{separator}{block}\n\n{content[close:]}", False


def join_around(before: str, after: str) -> str:
    """Join the text left around a removed span with exactly one blank line.

    Args:
        before (str): text preceding the span.
        after (str): text following the span.

    Returns:
        str: ``before`` and ``after`` trimmed at the seam and joined.
    """
    before = before.rstrip()
    after = after.lstrip()
    if before and after:
        return f"{before}\n\n{after}"
    return before or after


def remove_span(content: str, span: Span) -> str:
    return join_around(content[: span.start], content[span.end :])


def inject_index(path: Path, name: str, index: str, *, force: bool) -> InjectionResult:
    """Inject ``index`` as block ``name`` into the file at ``path``.

    A missing file is treated as empty and created.

    Args:
        path (Path): target file (AGENTS.md, CLAUDE.md...).
        name (str): block name, pre-sanitized (no ``"`` or ``>``).
        index (str): index content, without markers.
        force (bool): overwrite an existing block with the same name.

    Raises:
        MissingWrapperError: see :func:`inject_block`.
        AlreadyExistsError: see :func:`inject_block`.

    Returns:
        InjectionResult: whether the block existed and the size of the block.
    """
    content = read_text_or_none(path) or ""
    block = render_block(name, index)
    new_content, existed = inject_block(content, name, block, force=force, path=path)
    size_bytes, size_tokens = calculate_size(block)
    atomic_write(path, new_content)
    logger.info("inject_index", path=str(path), name=name, existed=existed, size_bytes=size_bytes)
    return InjectionResult(
        path=path,
        name=name,
        existed=existed,
        size_bytes=size_bytes,
        size_tokens=size_tokens,
    )


def remove_wrapper(path: Path) -> bool:
    """Remove the whole wrapper (and every block in it) from the file at ``path``.

    Content before and after the wrapper is kept, separated by one blank line.
    If nothing but whitespace is left, the file is deleted.

    Args:
        path (Path): target file.

    Returns:
        bool: True if a wrapper was removed, False if the file or wrapper is missing.
    """
    content = read_text_or_none(path)
    if content is None:
        return False
    wrapper = find_wrapper(content)
    if wrapper is None:
        return False

    new_content = remove_span(content, wrapper)
    if not new_content.strip():
        path.unlink(missing_ok=True)
        logger.info("remove_wrapper", path=str(path), deleted=True)
    else:
        atomic_write(path, new_content if new_content.endswith("\n") else f"{new_content}\n")
        logger.info("remove_wrapper", path=str(path), deleted=False)
    return True


def remove_block(path: Path, name: str, *, drop_empty_wrapper: bool = False) -> bool:
    """Remove block ``name`` from the file at ``path``.

    Args:
        path (Path): target file.
        name (str): block name.
        drop_empty_wrapper (bool): when the removed block was the last one, also
            remove the wrapper (deleting the file if nothing else is left).

    Returns:
        bool: True if the block was removed. False (and no write) if the file or
        the block does not exist.
    """
    content = read_text_or_none(path)
    if content is None:
        return False
    wrapper = find_wrapper(content)
    if wrapper is None:
        return False
    existing = find_block(content, name, within=wrapper)
    if existing is None:
        return False

    new_content = remove_span(content, existing)
    atomic_write(path, new_content)
    logger.info("remove_block", path=str(path), name=name)
    if drop_empty_wrapper and not list_block_names(new_content):
        remove_wrapper(path)
    return True


def list_blocks(path: Path) -> list[str]:
    """Names of the blocks injected in the file at ``path`` (empty if the file is missing)."""
    content = read_text_or_none(path)
    return list_block_names(content) if content is not None else []
