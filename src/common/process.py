"""Async wrappers around the external commands the pipeline drives (nix, nurl, cargo, git)."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from common.errors import CommandError
from common.logging_utils import extra_context, is_debug_enabled, Timer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of a finished command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(argv: Sequence[str]) -> CommandResult:
    """Run ``argv`` to completion and capture both output streams.

    A missing executable is reported as a CommandError with status 127.
    """
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "Running command",
                extra=extra_context(
                    event="command_start",
                    component="process",
                    action=argv[0],
                    argv=" ".join(argv)
                )
            )
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise CommandError(argv, 127, stderr=str(exc)) from exc
        stdout, stderr = await proc.communicate()
        result = CommandResult(
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
    if is_debug_enabled(logger):
        logger.debug(
            "Command finished",
            extra=extra_context(
                event="command_exit",
                component="process",
                action=argv[0],
                returncode=result.returncode,
                duration_ms=t.duration_ms()
            )
        )
    return result


async def get_stdout(argv: Sequence[str]) -> str:
    """Return the stdout of ``argv``; a non-zero exit raises CommandError."""
    result = await run_command(argv)
    if not result.ok:
        raise CommandError(argv, result.returncode, result.stdout, result.stderr)
    return result.stdout
