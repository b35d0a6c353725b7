"""crates.io fetcher: every published, non-yanked crate version is a revision."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import semantic_version

from constants import Constants, FetcherKind
from fetcher.base import Fetcher, PackageInfo, RegistryClient, as_dict, as_list
from license import LicenseStore
from versioning.models import Revisions, Tag, Version

logger = logging.getLogger(__name__)


def _stable(num: str) -> Optional[semantic_version.Version]:
    try:
        parsed = semantic_version.Version(num)
    except ValueError:
        return None
    return None if parsed.prerelease else parsed


def select_latest(versions: List[Tuple[str, str]]) -> Optional[Tuple[str, str]]:
    """Highest non-prerelease (num, license) pair, whatever the listing order.

    Falls back to the first listed version when every version is a
    prerelease or unparseable.
    """
    best: Optional[Tuple[semantic_version.Version, Tuple[str, str]]] = None
    for entry in versions:
        parsed = _stable(entry[0])
        if parsed is not None and (best is None or parsed > best[0]):
            best = (parsed, entry)
    if best is not None:
        return best[1]
    return versions[0] if versions else None


@dataclass
class FetchCrate(Fetcher):
    """A crate published on crates.io."""

    pname: str
    licenses: Optional[LicenseStore] = None

    name = FetcherKind.CRATE.value

    @property
    def api_url(self) -> str:
        return f"{Constants.CRATES_IO_API_BASE}/{self.pname}"

    def default_headers(self) -> Dict[str, str]:
        # crates.io rejects requests without a user agent
        return {"User-Agent": Constants.PROG_NAME}

    async def get_package_info(self, client: RegistryClient) -> PackageInfo:
        homepage = f"https://crates.io/crates/{self.pname}"
        info = as_dict(await client.json(self.api_url))

        published: List[Tuple[str, str]] = []
        for item in map(as_dict, as_list(info.get("versions"))):
            num = item.get("num")
            if not isinstance(num, str) or item.get("yanked"):
                continue
            published.append((num, str(item.get("license") or "")))

        revisions = Revisions()
        chosen = select_latest(published)
        if chosen is None:
            logger.error("crate '%s' has no releases available", self.pname)
        else:
            revisions.latest = chosen[0]
        for num, _ in published:
            revisions.insert(num, Tag(), num)

        license: List[str] = []
        if chosen is not None and chosen[1] and self.licenses is not None:
            license = self.licenses.parse_expression(chosen[1], "crates.io")

        return PackageInfo(
            pname=self.pname,
            description=str(as_dict(info.get("crate")).get("description") or ""),
            homepage=homepage,
            license=license,
            revisions=revisions,
        )

    async def get_version(self, client: RegistryClient, rev: str) -> Optional[Version]:
        return Tag()
