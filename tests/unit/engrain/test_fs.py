from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from engrain import fs
from engrain.fs import TEMP_PREFIX, TEMP_SUFFIX, atomic_write, read_text_or_none

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def leftover_temp_files(directory: Path) -> list[Path]:
    return list(directory.glob(f"{TEMP_PREFIX}*{TEMP_SUFFIX}"))


@pytest.mark.unit
def test_atomic_write_creates_parent_dirs(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "AGENTS.md"

    atomic_write(target, "hello\n")

    assert target.read_text(encoding="utf-8") == "hello\n"
    assert leftover_temp_files(target.parent) == []


@pytest.mark.unit
def test_atomic_write_failed_replace_keeps_old_content(tmp_path: Path, mocker: MockerFixture) -> None:
    target = tmp_path / "AGENTS.md"
    target.write_text("old\n", encoding="utf-8")
    mocker.patch.object(Path, "replace", side_effect=PermissionError("read-only"))

    with pytest.raises(PermissionError, match="read-only"):
        atomic_write(target, "new\n")

    assert target.read_text(encoding="utf-8") == "old\n"
    assert leftover_temp_files(tmp_path) == []


@pytest.mark.unit
def test_atomic_write_failed_write_removes_temp_file(tmp_path: Path, mocker: MockerFixture) -> None:
    target = tmp_path / "AGENTS.md"
    target.write_text("old\n", encoding="utf-8")
    mocker.patch.object(fs.os, "fdopen", side_effect=PermissionError("denied"))

    with pytest.raises(PermissionError, match="denied"):
        atomic_write(target, "new\n")

    assert target.read_text(encoding="utf-8") == "old\n"
    assert leftover_temp_files(tmp_path) == []


@pytest.mark.unit
@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_atomic_write_preserves_existing_mode(tmp_path: Path) -> None:
    target = tmp_path / "AGENTS.md"
    target.write_text("old\n", encoding="utf-8")
    target.chmod(0o640)

    atomic_write(target, "new\n")

    assert target.read_text(encoding="utf-8") == "new\n"
    assert stat.S_IMODE(target.stat().st_mode) == 0o640


@pytest.mark.unit
def test_read_text_or_none(tmp_path: Path) -> None:
    target = tmp_path / "CLAUDE.md"
    assert read_text_or_none(target) is None

    target.write_text("content", encoding="utf-8")
    assert read_text_or_none(target) == "content"
