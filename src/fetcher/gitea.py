"""Gitea and Forgejo (including Codeberg) repository fetcher."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from constants import Constants, FetcherKind
from fetcher.base import (
    CommitEntry,
    Fetcher,
    PackageInfo,
    RegistryClient,
    as_dict,
    as_list,
    gather_degraded,
    merge_revisions,
)
from versioning.models import Commit, Tag, Version

logger = logging.getLogger(__name__)


def _commit_entry(data: object) -> Optional[CommitEntry]:
    item = as_dict(data)
    sha = item.get("sha")
    commit = as_dict(item.get("commit"))
    date = as_dict(commit.get("committer")).get("date")
    if not isinstance(sha, str) or not isinstance(date, str):
        return None
    return CommitEntry(sha=sha, date=date, message=str(commit.get("message") or ""))


@dataclass
class FetchFromGitea(Fetcher):
    """Repository on a Gitea-compatible forge."""

    owner: str
    repo: str
    domain: str = Constants.CODEBERG_DOMAIN

    name = FetcherKind.GITEA.value

    @property
    def api_root(self) -> str:
        return f"https://{self.domain}/api/v1/repos/{self.owner}/{self.repo}"

    @property
    def homepage(self) -> str:
        return f"https://{self.domain}/{self.owner}/{self.repo}"

    def host(self) -> Optional[str]:
        return self.domain

    async def get_package_info(self, client: RegistryClient) -> PackageInfo:
        root = self.api_root
        limit = Constants.REVISION_LIST_LIMIT
        repo, releases, tag_list, commits = await gather_degraded(
            client.json(root),
            client.json(f"{root}/releases?limit=1"),
            client.json(f"{root}/tags?page=1&limit={limit}"),
            client.json(f"{root}/commits?limit={limit}&stat=false"),
        )

        release_list = as_list(releases)
        latest_release = as_dict(release_list[0]).get("tag_name") if release_list else None
        tags: List[str] = [
            tag["name"] for tag in map(as_dict, as_list(tag_list))
            if isinstance(tag.get("name"), str)
        ]
        entries = [e for e in map(_commit_entry, as_list(commits)) if e is not None]

        return PackageInfo(
            pname=self.repo,
            description=str(as_dict(repo).get("description") or ""),
            homepage=self.homepage,
            revisions=merge_revisions(
                latest_release if isinstance(latest_release, str) else None,
                tags,
                entries,
            ),
        )

    async def get_version(self, client: RegistryClient, rev: str) -> Optional[Version]:
        entry = _commit_entry(await client.json(f"{self.api_root}/git/commits/{rev}"))
        if entry is None:
            return None
        if entry.sha.startswith(rev):
            return Commit(date=entry.day, msg="")
        return Tag()

    async def has_submodules(self, client: RegistryClient, rev: str) -> bool:
        return await client.succeeds(f"{self.api_root}/raw/.gitmodules?ref={rev}")


@dataclass
class FetchFromForgejo(FetchFromGitea):
    """Forgejo speaks the Gitea API."""

    name = FetcherKind.FORGEJO.value


@dataclass
class FetchFromCodeberg(FetchFromGitea):
    """Codeberg runs Forgejo at a fixed domain."""

    name = FetcherKind.CODEBERG.value
