"""Questions the pipeline asks while generating a manifest."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

from builder import Builder
from versioning.models import Revisions, Version

BY_NAME_DIR = Path("pkgs/by-name")


def attr_name(pname: str) -> str:
    """Nix attribute for ``pname``; names must not start with a digit or dash."""
    if pname[:1].isalpha() or pname.startswith("_"):
        return pname
    return f"_{pname}"


def by_name_path(pname: str, base: Path = Path(".")) -> Optional[str]:
    """``pkgs/by-name/<xx>/<attr>/package.nix`` when run from a nixpkgs checkout."""
    if not (base / BY_NAME_DIR).is_dir():
        return None
    attr = attr_name(pname)
    return f"{BY_NAME_DIR}/{attr[:2]}/{attr}/package.nix"


class Frontend:
    """Source of answers: a person at a terminal or the defaults."""

    def url(self) -> str:
        raise NotImplementedError

    def rev(self, revisions: Optional[Revisions]) -> Tuple[str, Optional[Version]]:
        """Pick a revision; the version kind is returned when the registry knew it."""
        raise NotImplementedError

    def fetch_submodules(self) -> bool:
        raise NotImplementedError

    def version(self, version: str) -> str:
        raise NotImplementedError

    def pname(self, pname: Optional[str]) -> str:
        raise NotImplementedError

    def builder(self, builders: List[Builder]) -> Builder:
        raise NotImplementedError

    def output(self, pname: str) -> str:
        """Requested output path; a trailing slash asks for a new directory."""
        raise NotImplementedError

    def overwrite(self, path: Path) -> bool:
        """True to replace the existing ``path``."""
        raise NotImplementedError

    def should_overwrite(self, path: Path, overwrite: Optional[bool]) -> bool:
        """Command-line choice when given, otherwise ask."""
        if overwrite is not None:
            return overwrite
        return self.overwrite(path)
