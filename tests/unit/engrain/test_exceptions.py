from __future__ import annotations

from pathlib import Path

import pytest

from engrain.exceptions import (
    AlreadyExistsError,
    CommandError,
    ErrorKind,
    GitCommandError,
    MissingWrapperError,
    UnsafePathError,
    kind_of,
)


@pytest.mark.unit
def test_error_messages_name_the_failing_precondition() -> None:
    missing = MissingWrapperError(path=Path("AGENTS.md"))
    assert "wrapper not found in AGENTS.md" in str(missing)
    assert str(AlreadyExistsError(path=Path("AGENTS.md"), name="lib")) == (
        'Doc "lib" already exists in AGENTS.md. Use --force to update.'
    )
    unsafe = UnsafePathError(base=Path("/base"), target=Path("/etc"))
    assert str(unsafe).startswith('"/etc" escapes its base directory')


@pytest.mark.unit
def test_git_command_error_falls_back_to_exit_code() -> None:
    error = GitCommandError(command="git ls-remote", returncode=2, stdout="", stderr="")
    assert str(error) == "`git ls-remote` failed: exit code 2"


@pytest.mark.unit
def test_command_error_carries_exit_code() -> None:
    error = CommandError("stop", exit_code=3)
    assert error.exit_code == 3
    assert error.kind is ErrorKind.COMMAND


@pytest.mark.unit
@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (MissingWrapperError(path=Path("a")), ErrorKind.MISSING_WRAPPER),
        (AlreadyExistsError(path=Path("a"), name="x"), ErrorKind.ALREADY_EXISTS),
        (UnsafePathError(base=Path("a"), target=Path("b")), ErrorKind.PATH_TRAVERSAL),
        (PermissionError("denied"), ErrorKind.STORAGE),
        (ValueError("other"), ErrorKind.COMMAND),
    ],
)
def test_kind_of(error: BaseException, kind: ErrorKind) -> None:
    assert kind_of(error) is kind
