from dataclasses import dataclass, field
from enum import StrEnum, auto
from pathlib import Path


class ErrorKind(StrEnum):
    """Tag carried by every engrain error, so callers can branch without isinstance chains."""

    MISSING_WRAPPER = auto()
    ALREADY_EXISTS = auto()
    STORAGE = auto()
    GIT_CLONE = auto()
    GIT_REMOTE = auto()
    PATH_TRAVERSAL = auto()
    COMMAND = auto()


@dataclass(frozen=True)
class EngrainError(Exception):
    """Base exception for errors in the engrain package."""

    kind: ErrorKind = field(default=ErrorKind.COMMAND, init=False)

    @property
    def message(self) -> str:
        return "engrain error"

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class MissingWrapperError(EngrainError):
    """Raised when a block is injected into a non-empty file without an <engrain> wrapper."""

    path: Path
    kind: ErrorKind = field(default=ErrorKind.MISSING_WRAPPER, init=False)

    @property
    def message(self) -> str:
        return (
            f"Global <engrain> wrapper not found in {self.path}. Cannot inject docs without wrapper. "
            "Inject into an empty file first, or add the wrapper manually."
        )


@dataclass(frozen=True)
class AlreadyExistsError(EngrainError):
    """Raised when a block with the same name is already present and ``force`` is off."""

    path: Path
    name: str
    kind: ErrorKind = field(default=ErrorKind.ALREADY_EXISTS, init=False)

    @property
    def message(self) -> str:
        return f'Doc "{self.name}" already exists in {self.path}. Use --force to update.'


@dataclass(frozen=True)
class GitCommandError(EngrainError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str
    kind: ErrorKind = field(default=ErrorKind.GIT_REMOTE, init=False)

    @property
    def message(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip() or f"exit code {self.returncode}"
        return f"`{self.command}` failed: {detail}"


@dataclass(frozen=True)
class GitCloneError(EngrainError):
    """Raised when a repository cannot be cloned."""

    url: str
    reason: str
    kind: ErrorKind = field(default=ErrorKind.GIT_CLONE, init=False)

    @property
    def message(self) -> str:
        return self.reason


@dataclass(frozen=True)
class UnsafePathError(EngrainError):
    """Raised when a computed path escapes its expected base directory."""

    base: Path
    target: Path
    reason: str = "escapes its base directory (potential path traversal)"
    kind: ErrorKind = field(default=ErrorKind.PATH_TRAVERSAL, init=False)

    @property
    def message(self) -> str:
        return f'"{self.target}" {self.reason} ({self.base})'


@dataclass(frozen=True)
class CommandError(EngrainError):
    """Raised by a command once the failure has been reported; carries the process exit code."""

    reason: str
    exit_code: int = 1

    @property
    def message(self) -> str:
        return self.reason


def kind_of(error: BaseException) -> ErrorKind:
    """Tag any error: engrain errors carry their own kind, I/O failures are storage errors.

    Args:
        error (BaseException): the error to classify.

    Returns:
        ErrorKind: the error kind.
    """
    if isinstance(error, EngrainError):
        return error.kind
    if isinstance(error, OSError):
        return ErrorKind.STORAGE
    return ErrorKind.COMMAND
