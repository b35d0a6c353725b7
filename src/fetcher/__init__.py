"""Registry-backed source fetchers and dispatch from ``nurl --parse`` output."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from constants import Constants, FetcherKind
from fetcher.base import Fetcher, PackageInfo, RegistryClient, merge_revisions
from fetcher.crates_io import FetchCrate
from fetcher.gitea import FetchFromCodeberg, FetchFromForgejo, FetchFromGitea
from fetcher.github import FetchFromGitHub
from fetcher.gitlab import FetchFromGitLab
from fetcher.pypi import FetchPypi
from license import LicenseStore

logger = logging.getLogger(__name__)


@dataclass
class UnknownFetcher(Fetcher):
    """A fetcher nurl understands but no registry lookup exists for."""

    fetcher: str
    args: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:  # type: ignore[override]
        return self.fetcher


def _str(args: Mapping[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
    value = args.get(key, default)
    return value if isinstance(value, str) else default


def from_nurl(data: Mapping[str, Any], licenses: Optional[LicenseStore] = None) -> Fetcher:
    """Build the fetcher described by ``{"fetcher": name, "args": {...}}``.

    Anything unrecognised, including known fetchers with missing arguments,
    becomes an UnknownFetcher so the run continues without registry data.
    """
    name = data.get("fetcher") if isinstance(data, Mapping) else None
    args = data.get("args") if isinstance(data, Mapping) else None
    if not isinstance(name, str):
        raise ValueError("nurl output has no fetcher name")
    if not isinstance(args, dict):
        args = {}

    owner, repo = _str(args, "owner"), _str(args, "repo")
    try:
        if name == FetcherKind.GITHUB.value and owner and repo:
            return FetchFromGitHub(
                owner=owner,
                repo=repo,
                github_base=_str(args, "githubBase", Constants.GITHUB_BASE),
            )
        if name == FetcherKind.GITLAB.value and owner and repo:
            return FetchFromGitLab(
                owner=owner,
                repo=repo,
                domain=_str(args, "domain", Constants.GITLAB_DOMAIN),
                group=_str(args, "group"),
            )
        if name == FetcherKind.GITEA.value and owner and repo and _str(args, "domain"):
            return FetchFromGitea(owner=owner, repo=repo, domain=_str(args, "domain"))
        if name == FetcherKind.FORGEJO.value and owner and repo and _str(args, "domain"):
            return FetchFromForgejo(owner=owner, repo=repo, domain=_str(args, "domain"))
        if name == FetcherKind.CODEBERG.value and owner and repo:
            return FetchFromCodeberg(owner=owner, repo=repo)
        if name == FetcherKind.CRATE.value and _str(args, "pname"):
            return FetchCrate(pname=_str(args, "pname"), licenses=licenses)
        if name == FetcherKind.PYPI.value and _str(args, "pname"):
            return FetchPypi(pname=_str(args, "pname"), licenses=licenses)
    except TypeError as exc:
        logger.warning("Unusable arguments for %s: %s", name, exc)

    logger.debug("No registry support for fetcher %s", name)
    return UnknownFetcher(fetcher=name, args=dict(args))


def is_known(fetcher: Fetcher) -> bool:
    return not isinstance(fetcher, UnknownFetcher)


__all__ = [
    "FetchCrate",
    "FetchFromCodeberg",
    "FetchFromForgejo",
    "FetchFromGitHub",
    "FetchFromGitLab",
    "FetchFromGitea",
    "FetchPypi",
    "Fetcher",
    "PackageInfo",
    "RegistryClient",
    "UnknownFetcher",
    "from_nurl",
    "is_known",
    "merge_revisions",
]
