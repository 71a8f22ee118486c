from __future__ import annotations

import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from engrain import git
from engrain.exceptions import ErrorKind, GitCloneError, GitCommandError
from engrain.git import RemoteRef, cleanup_temp_dir, clone_repo, fetch_latest_commit_hash, parse_ls_remote

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def git_failure(stderr: str) -> GitCommandError:
    return GitCommandError(command="git", returncode=128, stdout="", stderr=stderr)


@pytest.mark.unit
def test_parse_ls_remote() -> None:
    output = "ref: refs/heads/main\tHEAD\nabc123\tHEAD\ndef456\trefs/heads/dev\n"
    assert parse_ls_remote(output) == [RemoteRef("abc123", "HEAD"), RemoteRef("def456", "refs/heads/dev")]


@pytest.mark.unit
def test_fetch_follows_remote_head(mocker: MockerFixture) -> None:
    run = mocker.patch.object(
        git,
        "run_git",
        side_effect=["ref: refs/heads/main\tHEAD\nabc123\tHEAD\n", "abc123\trefs/heads/main\n"],
    )

    assert fetch_latest_commit_hash("https://example.com/r.git") == "abc123"
    assert run.call_args_list[1].args[0] == ["ls-remote", "--heads", "https://example.com/r.git", "refs/heads/main"]


@pytest.mark.unit
def test_fetch_prefers_dereferenced_annotated_tag(mocker: MockerFixture) -> None:
    mocker.patch.object(
        git,
        "run_git",
        side_effect=["", "t111\trefs/tags/v1\nc222\trefs/tags/v1^{}\n"],
    )

    assert fetch_latest_commit_hash("https://example.com/r.git", "v1") == "c222"


@pytest.mark.unit
def test_fetch_unknown_ref_raises(mocker: MockerFixture) -> None:
    mocker.patch.object(git, "run_git", side_effect=["", "", ""])

    with pytest.raises(GitCommandError) as excinfo:
        fetch_latest_commit_hash("https://example.com/r.git", "nope")

    assert excinfo.value.kind is ErrorKind.GIT_REMOTE
    assert "Ref not found in remote" in str(excinfo.value)


@pytest.mark.unit
def test_fetch_wraps_git_failures(mocker: MockerFixture) -> None:
    mocker.patch.object(git, "run_git", side_effect=git_failure("fatal: unable to access"))

    with pytest.raises(GitCommandError, match="Failed to fetch latest commit hash"):
        fetch_latest_commit_hash("https://example.com/r.git", "main")


@pytest.mark.unit
def test_clone_repo_success(mocker: MockerFixture) -> None:
    run = mocker.patch.object(git, "run_git", side_effect=["", "abc123\n", "main\n"])

    result = clone_repo("https://example.com/r.git")
    try:
        assert result.commit_hash == "abc123"
        assert result.resolved_ref == "main"
        assert result.temp_dir.name.startswith("engrain-")
        clone_args = run.call_args_list[0].args[0]
        assert clone_args[:3] == ["clone", "--depth", "1"]
        assert "--branch" not in clone_args
    finally:
        cleanup_temp_dir(result.temp_dir)
    assert not result.temp_dir.exists()


@pytest.mark.unit
def test_clone_repo_with_ref_passes_branch(mocker: MockerFixture) -> None:
    run = mocker.patch.object(git, "run_git", side_effect=["", "abc123\n"])

    result = clone_repo("https://example.com/r.git", "v1")
    cleanup_temp_dir(result.temp_dir)

    assert result.resolved_ref == "v1"
    assert run.call_args_list[0].args[0][3:5] == ["--branch", "v1"]


@pytest.mark.unit
def test_clone_auth_failure_has_guidance_and_cleans_up(mocker: MockerFixture) -> None:
    mocker.patch.object(git, "run_git", side_effect=git_failure("remote: Repository not found."))
    rmtree = mocker.spy(git.shutil, "rmtree")

    with pytest.raises(GitCloneError) as excinfo:
        clone_repo("https://github.com/o/private.git")

    assert excinfo.value.kind is ErrorKind.GIT_CLONE
    assert "Authentication failed for https://github.com/o/private.git" in str(excinfo.value)
    rmtree.assert_called_once()


@pytest.mark.unit
def test_clone_timeout_message(mocker: MockerFixture) -> None:
    mocker.patch.object(git, "run_git", side_effect=subprocess.TimeoutExpired(cmd="git clone", timeout=60))

    with pytest.raises(GitCloneError, match="timed out after 60s"):
        clone_repo("https://github.com/o/slow.git")


@pytest.mark.unit
def test_cleanup_refuses_paths_outside_temp_dir() -> None:
    with pytest.raises(ValueError, match="outside of temp directory"):
        cleanup_temp_dir(Path(tempfile.gettempdir()).parent / "not-temp")


@pytest.mark.unit
def test_run_git_raises_on_failure(mocker: MockerFixture) -> None:
    mocker.patch.object(
        git.subprocess,
        "run",
        return_value=subprocess.CompletedProcess(args=["git"], returncode=1, stdout="", stderr="boom"),
    )

    with pytest.raises(GitCommandError, match="boom"):
        git.run_git(["status"])
