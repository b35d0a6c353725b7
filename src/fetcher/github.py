"""GitHub (and GitHub Enterprise) repository fetcher."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

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
    sort_tags_descending,
)
from versioning.models import Commit, Tag, Version

logger = logging.getLogger(__name__)

TAG_REF_PREFIX = "refs/tags/"


def _commit_entry(data: object) -> Optional[CommitEntry]:
    item = as_dict(data)
    sha = item.get("sha")
    commit = as_dict(item.get("commit"))
    date = as_dict(commit.get("committer")).get("date")
    if not isinstance(sha, str) or not isinstance(date, str):
        return None
    return CommitEntry(sha=sha, date=date, message=str(commit.get("message") or ""))


@dataclass
class FetchFromGitHub(Fetcher):
    """Repository on github.com or a GitHub Enterprise host."""

    owner: str
    repo: str
    github_base: str = Constants.GITHUB_BASE

    name = FetcherKind.GITHUB.value

    @property
    def api_root(self) -> str:
        return f"https://api.{self.github_base}/repos/{self.owner}/{self.repo}"

    @property
    def homepage(self) -> str:
        return f"https://{self.github_base}/{self.owner}/{self.repo}"

    def host(self) -> Optional[str]:
        return self.github_base

    def default_headers(self) -> Dict[str, str]:
        return {"User-Agent": Constants.USER_AGENT}

    async def get_package_info(self, client: RegistryClient) -> PackageInfo:
        root = self.api_root
        repo, release, refs, commits = await gather_degraded(
            client.json(root),
            client.json(f"{root}/releases/latest"),
            client.json(f"{root}/git/matching-refs/tags/"),
            client.json(f"{root}/commits?per_page={Constants.REVISION_LIST_LIMIT}"),
        )

        tags: List[str] = []
        for ref in as_list(refs):
            name = as_dict(ref).get("ref")
            if isinstance(name, str) and name.startswith(TAG_REF_PREFIX):
                tags.append(name[len(TAG_REF_PREFIX):])
        tags = sort_tags_descending(tags)[:Constants.REVISION_LIST_LIMIT]

        latest_release = as_dict(release).get("tag_name")
        entries = [e for e in map(_commit_entry, as_list(commits)) if e is not None]

        return PackageInfo(
            pname=self.repo,
            description=str(as_dict(repo).get("description") or ""),
            homepage=self.homepage,
            file_url_prefix=f"{self.homepage}/blob/${{src.rev}}/",
            revisions=merge_revisions(
                latest_release if isinstance(latest_release, str) else None,
                tags,
                entries,
            ),
        )

    async def get_version(self, client: RegistryClient, rev: str) -> Optional[Version]:
        entry = _commit_entry(await client.json(f"{self.api_root}/commits/{rev}"))
        if entry is None:
            return None
        if entry.sha.startswith(rev):
            return Commit(date=entry.day, msg="")
        return Tag()

    async def has_submodules(self, client: RegistryClient, rev: str) -> bool:
        return await client.succeeds(f"{self.api_root}/contents/.gitmodules?ref={rev}")
