"""PyPI fetcher: one revision per release that ships a source distribution."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from constants import Constants, FetcherKind
from fetcher.base import Fetcher, PackageInfo, RegistryClient, as_dict, as_list
from lang.python import get_python_dependencies
from license import LicenseStore
from versioning.models import Pypi, PypiFormat, Revisions, Version

logger = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def sdist_pname(filename: str, version: str, ext: str) -> Optional[str]:
    """Project name as spelled in ``<pname>-<version><ext>``, None if it does not fit.

    >>> sdist_pname("foo-bar-0.1.0.tar.gz", "0.1.0", ".tar.gz")
    'foo-bar'
    """
    suffix = f"-{version}{ext}"
    if not filename.endswith(suffix) or len(filename) == len(suffix):
        return None
    return filename[:-len(suffix)]


def _upload_time(value: Any) -> datetime:
    if not isinstance(value, str):
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def select_sdist(version: str, files: List[Dict[str, Any]]) -> Optional[Tuple[str, datetime, PypiFormat]]:
    """Pick the source archive for one release: the first ``.tar.gz``, else the first ``.zip``.

    Yanked files and anything that is not an sdist are ignored.
    """
    zip_candidate = None
    for item in files:
        if item.get("yanked") or item.get("packagetype") != "sdist":
            continue
        filename = str(item.get("filename") or "")
        pname = sdist_pname(filename, version, ".tar.gz")
        if pname is not None:
            return pname, _upload_time(item.get("upload_time_iso_8601")), PypiFormat.TAR_GZ
        if zip_candidate is None:
            pname = sdist_pname(filename, version, ".zip")
            if pname is not None:
                zip_candidate = (pname, _upload_time(item.get("upload_time_iso_8601")), PypiFormat.ZIP)
    return zip_candidate


@dataclass
class FetchPypi(Fetcher):
    """A project on pypi.org. ``pname`` follows the sdist file name once a release is picked."""

    pname: str
    licenses: Optional[LicenseStore] = None

    name = FetcherKind.PYPI.value

    @property
    def api_url(self) -> str:
        return f"{Constants.PYPI_API_BASE}/{self.pname}/json"

    @property
    def homepage(self) -> str:
        return f"https://pypi.org/project/{self.pname}"

    async def get_package_info(self, client: RegistryClient) -> PackageInfo:
        project = await client.json(self.api_url)
        revisions = Revisions()
        if project is None:
            return PackageInfo(
                pname=self.pname, description="", homepage=self.homepage, revisions=revisions
            )

        info = as_dict(as_dict(project).get("info"))
        candidates = []
        for version, files in as_dict(as_dict(project).get("releases")).items():
            chosen = select_sdist(version, [as_dict(f) for f in as_list(files)])
            if chosen is not None:
                candidates.append((version,) + chosen)

        # newest upload first; the sort is stable for equal timestamps
        candidates.sort(key=lambda item: item[2], reverse=True)
        for version, pname, _, fmt in candidates:
            revisions.insert(version, Pypi(pname=pname, format=fmt), f"{version} ({fmt.value})")

        if candidates:
            revisions.latest = candidates[0][0]
        else:
            logger.error("pypi package '%s' has no source distribution files available", self.pname)

        license: List[str] = []
        raw_license = info.get("license")
        if isinstance(raw_license, str) and self.licenses is not None:
            license = self.licenses.parse_expression(raw_license, "pypi")

        return PackageInfo(
            pname=self.pname,
            description=str(info.get("summary") or ""),
            homepage=self.homepage,
            license=license,
            python_dependencies=get_python_dependencies(as_list(info.get("requires_dist"))),
            revisions=revisions,
        )

    async def get_version(self, client: RegistryClient, rev: str) -> Optional[Version]:
        return None
