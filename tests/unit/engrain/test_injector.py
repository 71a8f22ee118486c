from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from engrain import injector
from engrain.exceptions import AlreadyExistsError, ErrorKind, MissingWrapperError
from engrain.injector import (
    WRAPPER_START,
    find_block,
    find_wrapper,
    inject_index,
    list_block_names,
    list_blocks,
    remove_block,
    remove_wrapper,
    render_block,
    render_wrapper,
)

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture

BLOCK_A = '<docs name="a">\nINDEX-A\n</docs>'
BLOCK_B = '<docs name="b">\nINDEX-B\n</docs>'


@pytest.fixture
def agents(tmp_path: Path) -> Path:
    return tmp_path / "AGENTS.md"


@pytest.mark.unit
def test_render_block() -> None:
    assert render_block("a", "INDEX-A") == BLOCK_A


@pytest.mark.unit
def test_inject_into_missing_file_creates_wrapper(agents: Path) -> None:
    result = inject_index(agents, "a", "INDEX-A", force=False)

    assert result.existed is False
    assert result.size_bytes == len(BLOCK_A.encode("utf-8"))
    assert agents.read_text(encoding="utf-8") == f"{WRAPPER_START}\n\n{BLOCK_A}\n\n</engrain>\n"


@pytest.mark.unit
def test_inject_into_whitespace_only_file_creates_wrapper(agents: Path) -> None:
    agents.write_text("  \n\n", encoding="utf-8")
    inject_index(agents, "a", "INDEX-A", force=False)
    assert agents.read_text(encoding="utf-8") == render_wrapper(BLOCK_A)


@pytest.mark.unit
def test_second_block_is_appended_before_wrapper_end(agents: Path) -> None:
    inject_index(agents, "a", "INDEX-A", force=False)
    inject_index(agents, "b", "INDEX-B", force=False)

    assert agents.read_text(encoding="utf-8") == f"{WRAPPER_START}\n\n{BLOCK_A}\n\n{BLOCK_B}\n\n</engrain>\n"
    assert list_blocks(agents) == ["a", "b"]


@pytest.mark.unit
def test_forced_injection_is_idempotent(agents: Path) -> None:
    inject_index(agents, "a", "INDEX-A", force=False)
    inject_index(agents, "b", "INDEX-B", force=False)
    first = agents.read_text(encoding="utf-8")

    result = inject_index(agents, "a", "INDEX-A", force=True)

    assert result.existed is True
    assert agents.read_text(encoding="utf-8") == first


@pytest.mark.unit
def test_forced_injection_replaces_block_in_place(agents: Path) -> None:
    inject_index(agents, "a", "INDEX-A", force=False)
    inject_index(agents, "b", "INDEX-B", force=False)

    inject_index(agents, "a", "NEW", force=True)

    content = agents.read_text(encoding="utf-8")
    assert '<docs name="a">\nNEW\n</docs>' in content
    assert "INDEX-A" not in content
    assert list_blocks(agents) == ["a", "b"]


@pytest.mark.unit
def test_conflict_without_force_leaves_file_unchanged(agents: Path) -> None:
    inject_index(agents, "a", "INDEX-A", force=False)
    before = agents.read_text(encoding="utf-8")

    with pytest.raises(AlreadyExistsError) as excinfo:
        inject_index(agents, "a", "OTHER", force=False)

    assert excinfo.value.kind is ErrorKind.ALREADY_EXISTS
    assert str(excinfo.value) == f'Doc "a" already exists in {agents}. Use --force to update.'
    assert agents.read_text(encoding="utf-8") == before


@pytest.mark.unit
def test_missing_wrapper_is_refused(agents: Path) -> None:
    agents.write_text("# Project notes\n", encoding="utf-8")

    with pytest.raises(MissingWrapperError) as excinfo:
        inject_index(agents, "a", "INDEX-A", force=False)

    assert excinfo.value.kind is ErrorKind.MISSING_WRAPPER
    assert agents.read_text(encoding="utf-8") == "# Project notes\n"


@pytest.mark.unit
def test_user_content_around_wrapper_is_preserved(agents: Path) -> None:
    agents.write_text(f"# Title\n\n{render_wrapper(BLOCK_A)}\n## Footer\n", encoding="utf-8")

    inject_index(agents, "b", "INDEX-B", force=False)

    content = agents.read_text(encoding="utf-8")
    assert content.startswith("# Title\n\n")
    assert content.endswith("</engrain>\n\n## Footer\n")
    assert list_blocks(agents) == ["a", "b"]


@pytest.mark.unit
def test_block_name_match_is_exact() -> None:
    content = render_wrapper('<docs name="ab">\nX\n</docs>')
    assert find_block(content, "a", within=find_wrapper(content)) is None
    assert find_block(content, "ab", within=find_wrapper(content)) is not None


@pytest.mark.unit
def test_blocks_outside_wrapper_are_ignored(agents: Path) -> None:
    agents.write_text(f"{BLOCK_A}\n\n{render_wrapper(BLOCK_B)}", encoding="utf-8")

    inject_index(agents, "a", "INDEX-A2", force=False)

    content = agents.read_text(encoding="utf-8")
    assert content.startswith(BLOCK_A)
    assert list_block_names(content) == ["b", "a"]


@pytest.mark.unit
def test_remove_block_without_wrapper_keeps_user_text(agents: Path) -> None:
    original = '# Notes\n\n<docs name="a">\nmy own text\n</docs>\n\ntail\n'
    agents.write_text(original, encoding="utf-8")

    assert remove_block(agents, "a") is False
    assert agents.read_text(encoding="utf-8") == original


@pytest.mark.unit
def test_remove_block_rejoins_with_one_blank_line(agents: Path) -> None:
    inject_index(agents, "a", "INDEX-A", force=False)
    inject_index(agents, "b", "INDEX-B", force=False)

    assert remove_block(agents, "a") is True

    assert agents.read_text(encoding="utf-8") == f"{WRAPPER_START}\n\n{BLOCK_B}\n\n</engrain>\n"


@pytest.mark.unit
def test_remove_missing_block_does_not_write(agents: Path, mocker: MockerFixture) -> None:
    inject_index(agents, "a", "INDEX-A", force=False)
    write = mocker.patch.object(injector, "atomic_write")

    assert remove_block(agents, "zzz") is False
    write.assert_not_called()


@pytest.mark.unit
def test_remove_block_from_missing_file(agents: Path) -> None:
    assert remove_block(agents, "a") is False
    assert not agents.exists()


@pytest.mark.unit
def test_remove_last_block_keeps_empty_wrapper(agents: Path) -> None:
    inject_index(agents, "a", "INDEX-A", force=False)

    remove_block(agents, "a")

    assert agents.read_text(encoding="utf-8") == f"{WRAPPER_START}\n\n</engrain>\n"
    inject_index(agents, "b", "INDEX-B", force=False)
    assert list_blocks(agents) == ["b"]


@pytest.mark.unit
def test_remove_last_block_with_prune_deletes_file(agents: Path) -> None:
    inject_index(agents, "a", "INDEX-A", force=False)

    remove_block(agents, "a", drop_empty_wrapper=True)

    assert not agents.exists()


@pytest.mark.unit
def test_remove_wrapper_keeps_user_content(agents: Path) -> None:
    agents.write_text(f"# Title\n\n{render_wrapper(BLOCK_A)}\n## After\n", encoding="utf-8")

    assert remove_wrapper(agents) is True

    assert agents.read_text(encoding="utf-8") == "# Title\n\n## After\n"


@pytest.mark.unit
def test_remove_wrapper_deletes_file_left_empty(agents: Path) -> None:
    inject_index(agents, "a", "INDEX-A", force=False)

    assert remove_wrapper(agents) is True
    assert not agents.exists()


@pytest.mark.unit
def test_remove_wrapper_without_wrapper(agents: Path) -> None:
    agents.write_text("# Notes\n", encoding="utf-8")
    assert remove_wrapper(agents) is False
    assert agents.read_text(encoding="utf-8") == "# Notes\n"
