from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from typing import TextIO


class Reporter(Protocol):
    """User-facing progress channel handed to commands by the CLI.

    Core modules never see it; they only log.
    """

    def info(self, text: str) -> None: ...

    def step(self, text: str) -> None: ...

    def message(self, text: str) -> None: ...

    def warn(self, text: str) -> None: ...

    def error(self, text: str) -> None: ...

    def note(self, text: str, title: str) -> None: ...


class ConsoleReporter:
    """Plain-text reporter writing one line per event."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream if stream is not None else sys.stderr

    def _write(self, text: str) -> None:
        self.stream.write(f"{text}\n")
        self.stream.flush()

    def info(self, text: str) -> None:
        self._write(f"* {text}")

    def step(self, text: str) -> None:
        self._write(f"+ {text}")

    def message(self, text: str) -> None:
        self._write(f"  {text}" if text else "")

    def warn(self, text: str) -> None:
        self._write(f"WARNING: {text}")

    def error(self, text: str) -> None:
        self._write(f"ERROR: {text}")

    def note(self, text: str, title: str) -> None:
        self._write(f"--- {title} ---")
        self._write(text)
        self._write("-" * (len(title) + 8))


class RecordingReporter:
    """Reporter keeping every event in memory, as ``(kind, text)`` pairs."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def info(self, text: str) -> None:
        self.events.append(("info", text))

    def step(self, text: str) -> None:
        self.events.append(("step", text))

    def message(self, text: str) -> None:
        self.events.append(("message", text))

    def warn(self, text: str) -> None:
        self.events.append(("warn", text))

    def error(self, text: str) -> None:
        self.events.append(("error", text))

    def note(self, text: str, title: str) -> None:
        self.events.append(("note", f"{title}: {text}"))

    def texts(self, kind: str) -> list[str]:
        return [text for k, text in self.events if k == kind]
