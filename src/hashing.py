"""Content hash discovery for fixed-output derivations.

Nix reports the real hash of a fixed-output derivation only when the declared
one is wrong. Building the expression with a fake hash therefore fails on
purpose, and the expected hash is read back from the mismatch diagnostic:

    error: hash mismatch in fixed-output derivation '/nix/store/...':
             specified: sha256-AAAA...
                got:    sha256-<real hash>
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from common.logging_utils import extra_context, is_debug_enabled, Timer
from common.process import run_command
from constants import Constants

logger = logging.getLogger(__name__)

FAKE_HASH = Constants.FAKE_HASH


def extract_hash(lines: Iterable[str]) -> Optional[str]:
    """Return the hash following ``got:`` on the line right after ``specified:``.

    Args:
        lines: Diagnostic output of a failed build, one line per item.

    Returns:
        str or None: The trimmed hash, None when no specified/got pair exists.
    """
    previous_was_specified = False
    for line in lines:
        stripped = line.strip()
        if previous_was_specified and stripped.startswith("got:"):
            return stripped[len("got:"):].strip() or None
        previous_was_specified = stripped.startswith("specified:")
    return None


def build_command(expr: str) -> list:
    return [
        Constants.NIX,
        "build",
        "--extra-experimental-features",
        "nix-command",
        "--impure",
        "--no-link",
        "--expr",
        expr,
    ]


async def fod_hash(expr: str) -> Optional[str]:
    """Discover the content hash of the fixed-output derivation ``expr`` evaluates to.

    ``expr`` must use FAKE_HASH as its output hash. A successful build means
    the fake hash was somehow right, which is reported and yields None; the
    caller keeps the placeholder in that case.
    """
    with Timer() as t:
        result = await run_command(build_command(expr))

    if result.ok:
        logger.error(
            "Build succeeded unexpectedly while computing a hash",
            extra=extra_context(
                event="oracle_anomaly",
                component="hashing",
                action="fod_hash",
                outcome="unexpected_success",
                duration_ms=t.duration_ms()
            )
        )
        return None

    found = extract_hash(result.stderr.splitlines())
    if found is None:
        logger.error("Failed to find the hash in nix build output:\n%s", result.stderr.strip())
    elif is_debug_enabled(logger):
        logger.debug(
            "Hash found",
            extra=extra_context(
                event="oracle_result",
                component="hashing",
                action="fod_hash",
                outcome="found",
                duration_ms=t.duration_ms()
            )
        )
    return found


async def fod_hash_or_fake(expr: str, what: str) -> str:
    """Like fod_hash but substitutes FAKE_HASH and logs when discovery fails."""
    found = await fod_hash(expr)
    if found is None:
        logger.error("Could not determine %s, leaving a placeholder hash", what)
        return FAKE_HASH
    return found
