"""Escaping rules of the pipe-delimited index format.

Directory and file names may contain any of the characters the format uses as
structure. Each literal occurrence of one of them, and of the escape character
itself, is prefixed with a backslash. Readers never fully decode a document:
they only need to tell structural delimiters from escaped ones, which is what
:func:`is_escaped` and :func:`split_unescaped` do.
"""

from __future__ import annotations

SECTION_DELIMITER = "|"
KEY_DELIMITER = ":"
LIST_OPEN = "{"
LIST_CLOSE = "}"
ITEM_DELIMITER = ","
ESCAPE = "\\"

RESERVED_CHARS: frozenset[str] = frozenset(
    {SECTION_DELIMITER, KEY_DELIMITER, LIST_OPEN, LIST_CLOSE, ITEM_DELIMITER},
)


def escape_token(token: str) -> str:
    """Escape a directory or file name so it can be embedded in the index.

    The escape character is doubled first, then every reserved character is
    prefixed with it, so escapes inserted by this function are never escaped
    a second time.

    Args:
        token (str): raw name.

    Returns:
        str: the escaped name (empty string for an empty token).
    """
    escaped = token.replace(ESCAPE, ESCAPE * 2)
    return "".join(f"{ESCAPE}{ch}" if ch in RESERVED_CHARS else ch for ch in escaped)


def unescape_token(token: str) -> str:
    """Reverse :func:`escape_token`.

    Args:
        token (str): escaped name.

    Returns:
        str: the raw name. A dangling escape at the end is kept as-is.
    """
    out: list[str] = []
    i = 0
    while i < len(token):
        ch = token[i]
        if ch == ESCAPE and i + 1 < len(token):
            out.append(token[i + 1])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def is_escaped(text: str, index: int) -> bool:
    """Tell whether the character at ``index`` is preceded by an odd run of escapes.

    Args:
        text (str): the text being scanned.
        index (int): position of the character to test.

    Returns:
        bool: True if the character is a literal (escaped), False if it is structural.
    """
    count = 0
    i = index - 1
    while i >= 0 and text[i] == ESCAPE:
        count += 1
        i -= 1
    return count % 2 == 1


def find_unescaped(text: str, char: str, start: int = 0) -> int:
    """Return the index of the first unescaped ``char`` at or after ``start``, or -1."""
    for i in range(start, len(text)):
        if text[i] == char and not is_escaped(text, i):
            return i
    return -1


def split_unescaped(text: str, delimiter: str) -> list[str]:
    """Split ``text`` on ``delimiter``, ignoring escaped occurrences.

    Tokens are returned still escaped. Like :meth:`str.split`, splitting an
    empty string returns ``[""]``.

    Args:
        text (str): the text to split.
        delimiter (str): a single delimiter character.

    Returns:
        list[str]: the parts between unescaped delimiters.
    """
    parts: list[str] = []
    current: list[str] = []
    # length of the escape run ending at the previous character
    run = 0
    for ch in text:
        if ch == delimiter and run % 2 == 0:
            parts.append("".join(current))
            current = []
            run = 0
            continue
        current.append(ch)
        run = run + 1 if ch == ESCAPE else 0
    parts.append("".join(current))
    return parts
