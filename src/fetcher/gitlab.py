"""GitLab (gitlab.com or self-hosted) repository fetcher."""
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
    sha = item.get("id")
    date = item.get("committed_date")
    if not isinstance(sha, str) or not isinstance(date, str):
        return None
    return CommitEntry(sha=sha, date=date, message=str(item.get("title") or ""))


@dataclass
class FetchFromGitLab(Fetcher):
    """Project addressed as ``[group/]owner/repo`` on a GitLab instance."""

    owner: str
    repo: str
    domain: str = Constants.GITLAB_DOMAIN
    group: Optional[str] = None

    name = FetcherKind.GITLAB.value

    @property
    def project_path(self) -> str:
        parts = [self.group] if self.group else []
        return "/".join(parts + [self.owner, self.repo])

    @property
    def api_root(self) -> str:
        """Projects API root; the project path is URL-encoded into a single segment."""
        encoded = self.project_path.replace("/", "%2F")
        return f"https://{self.domain}/api/v4/projects/{encoded}"

    @property
    def homepage(self) -> str:
        return f"https://{self.domain}/{self.project_path}"

    def host(self) -> Optional[str]:
        return self.domain

    async def get_package_info(self, client: RegistryClient) -> PackageInfo:
        root = self.api_root
        limit = Constants.REVISION_LIST_LIMIT
        project, release, tag_list, commits = await gather_degraded(
            client.json(root),
            client.json(f"{root}/releases/permalink/latest"),
            client.json(f"{root}/repository/tags?per_page={limit}"),
            client.json(f"{root}/repository/commits?per_page={limit}"),
        )

        tags: List[str] = [
            tag["name"] for tag in map(as_dict, as_list(tag_list))
            if isinstance(tag.get("name"), str)
        ]
        latest_release = as_dict(release).get("tag_name")
        entries = [e for e in map(_commit_entry, as_list(commits)) if e is not None]

        return PackageInfo(
            pname=self.repo,
            description=str(as_dict(project).get("description") or ""),
            homepage=self.homepage,
            file_url_prefix=f"{self.homepage}/-/blob/${{src.rev}}/",
            revisions=merge_revisions(
                latest_release if isinstance(latest_release, str) else None,
                tags,
                entries,
            ),
        )

    async def get_version(self, client: RegistryClient, rev: str) -> Optional[Version]:
        entry = _commit_entry(await client.json(f"{self.api_root}/repository/commits/{rev}"))
        if entry is None:
            return None
        if entry.sha.startswith(rev):
            return Commit(date=entry.day, msg="")
        return Tag()

    async def has_submodules(self, client: RegistryClient, rev: str) -> bool:
        return await client.succeeds(
            f"{self.api_root}/repository/files/.gitmodules/raw?ref={rev}"
        )
