"""Commit the generated files with git."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from common.process import get_stdout
from constants import Constants

logger = logging.getLogger(__name__)


def commit_message(pname: str, version: str) -> str:
    return f"{pname}: init at {version}"


async def commit_files(paths: Sequence[Path], pname: str, version: str) -> None:
    """Stage ``paths`` and commit exactly those files.

    Raises:
        CommandError: git is missing or refused to add or commit.
    """
    files = [str(path) for path in paths]
    await get_stdout([Constants.GIT, "add", "--", *files])
    await get_stdout([Constants.GIT, "commit", "-m", commit_message(pname, version), "--", *files])
    logger.info("Committed %s", ", ".join(files))
