"""Data models for revisions offered by a registry and their version semantics."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Union


class PypiFormat(Enum):
    """Source distribution archive formats published on PyPI."""
    TAR_GZ = "tar.gz"
    ZIP = "zip"


@dataclass(frozen=True)
class Latest:
    """The registry's latest release."""


@dataclass(frozen=True)
class Tag:
    """A tagged revision."""


@dataclass(frozen=True)
class Head:
    """The newest commit on the default branch."""
    date: str
    msg: str


@dataclass(frozen=True)
class Commit:
    """An older commit on the default branch."""
    date: str
    msg: str


@dataclass(frozen=True)
class Pypi:
    """A PyPI release; the sdist file name may differ from the project name."""
    pname: str
    format: PypiFormat


Version = Union[Latest, Tag, Head, Commit, Pypi]


@dataclass(frozen=True)
class Completion:
    """A revision menu entry: text shown to the user and the value it stands for."""
    display: str
    replacement: str


@dataclass
class Revisions:
    """Selectable revisions of a package.

    ``latest`` is either empty or a key of ``versions``. Insertion keeps the
    first value seen for a key.
    """
    latest: str = ""
    completions: List[Completion] = field(default_factory=list)
    versions: Dict[str, Version] = field(default_factory=dict)

    def insert(self, rev: str, version: Version, display: str) -> bool:
        """Record ``rev`` unless already known. Returns True when added."""
        if rev in self.versions:
            return False
        self.versions[rev] = version
        self.completions.append(Completion(display=display, replacement=rev))
        return True
