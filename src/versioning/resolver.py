"""Derive the default package version string from a chosen revision."""
from __future__ import annotations

import re
from typing import Optional

from versioning.models import Commit, Head, Latest, Pypi, Tag, Version

_COMMIT_ID_RE = re.compile(r"[0-9a-fA-F]{40}")


def version_number(rev: str) -> str:
    """Return ``rev`` from its first decimal digit on, or all of it when it has none.

    >>> version_number("v1.2.3")
    '1.2.3'
    """
    for index, char in enumerate(rev):
        if char.isdigit():
            return rev[index:]
    return rev


def looks_like_commit(rev: str) -> bool:
    """True for a full 40 character hexadecimal commit id."""
    return bool(_COMMIT_ID_RE.fullmatch(rev))


def resolve_version(rev: str, version: Optional[Version]) -> str:
    """Map a revision and what the registry knows about it to a version string.

    Args:
        rev: Revision id picked by the user (tag, branch, commit or release).
        version: The registry's classification of ``rev``, None when unknown.

    Returns:
        str: Default version, e.g. ``1.2.3`` or ``0-unstable-2024-01-31``.
    """
    if version is None:
        return "unstable" if looks_like_commit(rev) else version_number(rev)
    if isinstance(version, (Latest, Tag)):
        return version_number(rev)
    if isinstance(version, (Head, Commit)):
        return f"0-unstable-{version.date}"
    if isinstance(version, Pypi):
        return rev
    raise TypeError(f"unsupported version kind: {type(version).__name__}")
