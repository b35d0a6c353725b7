"""Tests for committing generated files."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, call, patch

import pytest

from common.errors import CommandError
from vcs import commit_files, commit_message


def test_commit_message():
    assert commit_message("hello", "1.0") == "hello: init at 1.0"


@patch("vcs.get_stdout", new_callable=AsyncMock, return_value="")
def test_commit_only_given_files(mock_stdout):
    asyncio.run(commit_files([Path("pkgs/hello/package.nix"), Path("pkgs/hello/Cargo.lock")], "hello", "1.0"))
    assert mock_stdout.await_args_list == [
        call(["git", "add", "--", "pkgs/hello/package.nix", "pkgs/hello/Cargo.lock"]),
        call([
            "git", "commit", "-m", "hello: init at 1.0", "--",
            "pkgs/hello/package.nix", "pkgs/hello/Cargo.lock",
        ]),
    ]


@patch("vcs.get_stdout", new_callable=AsyncMock, side_effect=CommandError(["git"], 128, stderr="not a repo"))
def test_git_failure_propagates(_mock_stdout):
    with pytest.raises(CommandError):
        asyncio.run(commit_files([Path("default.nix")], "x", "1"))
