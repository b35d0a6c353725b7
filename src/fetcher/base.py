"""Shared fetcher contract, package metadata model and revision merge logic."""
from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import semantic_version
from packaging.version import InvalidVersion, Version as PepVersion

from common.http_client import fetch_json, succeeds
from common.logging_utils import extra_context, is_debug_enabled
from lang.python import PythonDependencies
from versioning.models import Commit, Head, Latest, Revisions, Tag, Version
from versioning.resolver import version_number

logger = logging.getLogger(__name__)


class RegistryClient:
    """Per-run HTTP client bound to one registry host's headers.

    Requests run on worker threads so several can be awaited together.
    """

    def __init__(self, headers: Optional[Dict[str, str]] = None):
        self.headers: Dict[str, str] = dict(headers or {})

    async def json(self, url: str) -> Optional[Any]:
        return await asyncio.to_thread(fetch_json, url, headers=self.headers)

    async def succeeds(self, url: str) -> bool:
        return await asyncio.to_thread(succeeds, url, headers=self.headers)


@dataclass
class PackageInfo:
    """Everything a registry knows about the package, normalized."""

    pname: str
    description: str
    homepage: str
    revisions: Revisions
    file_url_prefix: Optional[str] = None
    license: List[str] = field(default_factory=list)
    python_dependencies: PythonDependencies = field(default_factory=PythonDependencies)


@dataclass(frozen=True)
class CommitEntry:
    """A commit as listed by a forge API."""

    sha: str
    date: str
    message: str

    @property
    def day(self) -> str:
        return self.date[:10]

    @property
    def subject(self) -> str:
        lines = self.message.splitlines()
        return lines[0] if lines else ""


class Fetcher:
    """A source fetcher known to nurl, optionally backed by a registry API.

    Subclasses set ``name`` to the Nix fetcher function they stand for.
    """

    name = ""

    def host(self) -> Optional[str]:
        """Host used to look up access tokens, None when none apply."""
        return None

    def default_headers(self) -> Dict[str, str]:
        return {}

    async def create_client(self, tokens: Any = None) -> RegistryClient:
        """Build the client for this registry, attaching a token for its host."""
        headers = self.default_headers()
        host = self.host()
        if tokens is not None and host:
            headers.update(await tokens.headers_for(host))
        return RegistryClient(headers)

    async def get_package_info(self, client: RegistryClient) -> PackageInfo:
        raise NotImplementedError

    async def get_version(self, client: RegistryClient, rev: str) -> Optional[Version]:
        return None

    async def has_submodules(self, client: RegistryClient, rev: str) -> bool:
        return False


async def gather_degraded(*calls: Any) -> List[Any]:
    """Await ``calls`` together; a call that raises contributes None.

    One failing sub-request never cancels its siblings.
    """
    results = await asyncio.gather(*calls, return_exceptions=True)
    out = []
    for result in results:
        if isinstance(result, Exception):
            logger.warning(
                "Registry request failed: %s",
                result,
                extra=extra_context(event="degraded", component="fetcher", outcome="exception")
            )
            out.append(None)
        else:
            out.append(result)
    return out


def _tag_version(tag: str) -> Optional[Tuple[PepVersion, bool]]:
    """(release ordering key, is pre-release) of a tag, None when it has no version.

    Strict semver is tried first so ``1.0.1-1`` counts as a pre-release;
    anything else falls back to PEP 440.
    """
    text = version_number(tag)
    try:
        sem = semantic_version.Version(text)
    except ValueError:
        sem = None
    if sem is not None:
        return PepVersion(f"{sem.major}.{sem.minor}.{sem.patch}"), bool(sem.prerelease)
    try:
        pep = PepVersion(text)
    except InvalidVersion:
        return None
    return pep, pep.is_prerelease


def compare_tags(left: str, right: str) -> int:
    """Order two tags by version, falling back to plain string order."""
    lv, rv = _tag_version(left), _tag_version(right)
    if lv is not None and rv is not None:
        lkey, rkey = (lv[0], not lv[1]), (rv[0], not rv[1])
        if lkey != rkey:
            return -1 if lkey < rkey else 1
    if left == right:
        return 0
    return -1 if left < right else 1


def sort_tags_descending(tags: Iterable[str]) -> List[str]:
    return sorted(tags, key=functools.cmp_to_key(compare_tags), reverse=True)


def pick_latest_tag(tags: Sequence[str]) -> Optional[str]:
    """Highest tag that parses as a final (non pre-release) version.

    Falls back to the first listed tag when no tag carries such a version.
    """
    stable = [
        (parsed[0], index) for index, parsed in enumerate(_tag_version(t) for t in tags)
        if parsed is not None and not parsed[1]
    ]
    if stable:
        # max by version, earliest listing position on ties
        _, index = max(stable, key=lambda item: (item[0], -item[1]))
        return tags[index]
    return tags[0] if tags else None


def merge_revisions(
    latest_release: Optional[str],
    tags: Optional[Sequence[str]],
    commits: Optional[Sequence[CommitEntry]],
) -> Revisions:
    """Combine a forge's release, tag and commit listings into Revisions.

    Args:
        latest_release: Tag of the latest release, None when unknown.
        tags: Tag names in listing order.
        commits: Recent commits, newest first.
    """
    revisions = Revisions()

    if latest_release:
        revisions.latest = latest_release
        revisions.insert(latest_release, Latest(), f"{latest_release} (latest release)")

    if tags:
        if not revisions.latest:
            chosen = pick_latest_tag(tags)
            if chosen:
                revisions.latest = chosen
                revisions.insert(chosen, Tag(), f"{chosen} (tag)")
        for tag in tags:
            if tag == latest_release:
                continue
            revisions.insert(tag, Tag(), f"{tag} (tag)")

    if commits:
        head, rest = commits[0], commits[1:]
        if not revisions.latest:
            revisions.latest = head.sha
        revisions.insert(
            head.sha,
            Head(date=head.day, msg=head.subject),
            f"{head.sha} ({head.day} - HEAD) {head.subject}",
        )
        for entry in rest:
            revisions.insert(
                entry.sha,
                Commit(date=entry.day, msg=entry.subject),
                f"{entry.sha} ({entry.day}) {entry.subject}",
            )

    if is_debug_enabled(logger):
        logger.debug(
            "Merged revisions",
            extra=extra_context(
                event="decision",
                component="fetcher",
                action="merge_revisions",
                latest=revisions.latest,
                count=len(revisions.versions)
            )
        )
    return revisions


def as_list(value: Any) -> List[Any]:
    """Treat anything but a JSON array as empty."""
    return value if isinstance(value, list) else []


def as_dict(value: Any) -> Dict[str, Any]:
    """Treat anything but a JSON object as empty."""
    return value if isinstance(value, dict) else {}

