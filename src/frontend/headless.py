"""Non-interactive answers: every question takes its default."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from builder import Builder
from common.errors import NixDraftError
from frontend.base import Frontend, by_name_path
from versioning.models import Revisions, Version

logger = logging.getLogger(__name__)


class Headless(Frontend):
    def url(self) -> str:
        raise NixDraftError("specifying a URL with --url is required in headless mode")

    def rev(self, revisions: Optional[Revisions]) -> Tuple[str, Optional[Version]]:
        if revisions is None:
            return "", None
        return revisions.latest, revisions.versions.get(revisions.latest)

    def fetch_submodules(self) -> bool:
        return True

    def version(self, version: str) -> str:
        return version

    def pname(self, pname: Optional[str]) -> str:
        return pname or ""

    def builder(self, builders: List[Builder]) -> Builder:
        return builders[0]

    def output(self, pname: str) -> str:
        return by_name_path(pname) or "."

    def overwrite(self, path: Path) -> bool:
        logger.error("path %s already exists, use --overwrite to always overwrite files", path)
        return False
