"""Size of an index: UTF-8 bytes and tokens (tiktoken, ``cl100k_base``)."""

from __future__ import annotations

import tiktoken

ENCODING_NAME = "cl100k_base"

_encoding: tiktoken.Encoding | None = None


def get_encoder() -> tiktoken.Encoding:
    """Get or create the tiktoken encoder (lazy initialization).

    Returns:
        tiktoken.Encoding: the ``cl100k_base`` encoding.
    """
    global _encoding  # noqa: PLW0603
    if _encoding is None:
        _encoding = tiktoken.get_encoding(ENCODING_NAME)
    return _encoding


def count_tokens(content: str) -> int:
    """Count the tokens of ``content`` with the shared encoder.

    Special-token markers are counted as plain text.

    Args:
        content (str): text to measure.

    Returns:
        int: token count.
    """
    return len(get_encoder().encode(content, disallowed_special=()))


def calculate_size(content: str) -> tuple[int, int]:
    """Return the UTF-8 byte size and token count of ``content``."""
    return len(content.encode("utf-8")), count_tokens(content)


def format_size(size_bytes: int, size_tokens: int) -> str:
    """Format a size for display, e.g. ``"8.2 KB · 2,048 tokens"``.

    Args:
        size_bytes (int): size in bytes.
        size_tokens (int): size in tokens.

    Returns:
        str: human-readable size.
    """
    if size_bytes < 1024:  # noqa: PLR2004
        bytes_display = f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        bytes_display = f"{size_bytes / 1024:.1f} KB"
    else:
        bytes_display = f"{size_bytes / (1024 * 1024):.1f} MB"
    return f"{bytes_display} · {size_tokens:,} tokens"
