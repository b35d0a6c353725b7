"""Build strategy detection for a fetched source tree.

The tree is inspected once into ``SourceSignals``; ``enumerate_builders``
turns those signals into the ordered list of candidate builders offered to
the user. The first candidate is the default.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from lang.rust import CARGO_LOCK, CARGO_TOML, lock_has_git_source


class CargoVendor(Enum):
    """How crate dependencies are made available to the sandbox."""

    FETCH_CARGO_VENDOR = "fetchCargoVendor"
    IMPORT_CARGO_LOCK = "importCargoLock"


class PythonFormat(Enum):
    PYPROJECT = "pyproject"
    SETUPTOOLS = "setuptools"


@dataclass(frozen=True)
class BuildGoModule:
    def label(self) -> str:
        return "buildGoModule"


@dataclass(frozen=True)
class BuildPythonPackage:
    application: bool
    format: PythonFormat
    rust: Optional[CargoVendor] = None

    def label(self) -> str:
        kind = "buildPythonApplication" if self.application else "buildPythonPackage"
        text = f"{kind} - {self.format.value}"
        if self.rust is not None:
            text += f" + {self.rust.value}"
        return text


@dataclass(frozen=True)
class BuildRustPackage:
    vendor: CargoVendor

    def label(self) -> str:
        if self.vendor is CargoVendor.FETCH_CARGO_VENDOR:
            return "buildRustPackage - cargoHash"
        return "buildRustPackage - cargoLock"


@dataclass(frozen=True)
class MkDerivation:
    rust: Optional[CargoVendor] = None

    def label(self) -> str:
        if self.rust is None:
            return "stdenv.mkDerivation"
        return f"stdenv.mkDerivation + {self.rust.value}"


@dataclass(frozen=True)
class MkDerivationNoCC:
    def label(self) -> str:
        return "stdenvNoCC.mkDerivation"


Builder = Union[BuildGoModule, BuildPythonPackage, BuildRustPackage, MkDerivation, MkDerivationNoCC]


@dataclass(frozen=True)
class SourceSignals:
    """Build-relevant files found at the root of the source tree."""

    has_cargo: bool = False
    has_cargo_lock: bool = False
    cargo_lock_has_git: bool = False
    has_cmake: bool = False
    has_go: bool = False
    has_meson: bool = False
    has_zig: bool = False
    has_pyproject: bool = False
    has_setuptools: bool = False
    has_poetry_lock: bool = False

    @classmethod
    def from_dir(cls, src_dir: Path) -> "SourceSignals":
        lock = src_dir / CARGO_LOCK
        has_lock = lock.is_file()
        return cls(
            has_cargo=(src_dir / CARGO_TOML).is_file(),
            has_cargo_lock=has_lock,
            cargo_lock_has_git=has_lock and lock_has_git_source(lock),
            has_cmake=(src_dir / "CMakeLists.txt").is_file(),
            has_go=(src_dir / "go.mod").is_file(),
            has_meson=(src_dir / "meson.build").is_file(),
            has_zig=(src_dir / "build.zig").is_file(),
            has_pyproject=(src_dir / "pyproject.toml").is_file(),
            has_setuptools=(src_dir / "setup.py").is_file(),
            has_poetry_lock=(src_dir / "poetry.lock").is_file(),
        )

    def cargo_vendors(self) -> List[CargoVendor]:
        """Vendoring strategies, preferred first.

        Lock files that pin git sources, or no lock file at all, favour
        embedding the lock file; otherwise the vendor hash comes first.
        """
        if not self.has_cargo:
            return []
        if not self.has_cargo_lock or self.cargo_lock_has_git:
            return [CargoVendor.IMPORT_CARGO_LOCK, CargoVendor.FETCH_CARGO_VENDOR]
        return [CargoVendor.FETCH_CARGO_VENDOR, CargoVendor.IMPORT_CARGO_LOCK]

    def python_formats(self) -> List[PythonFormat]:
        formats = []
        if self.has_pyproject:
            formats.append(PythonFormat.PYPROJECT)
        if self.has_setuptools:
            formats.append(PythonFormat.SETUPTOOLS)
            if not self.has_pyproject:
                formats.append(PythonFormat.PYPROJECT)
        return formats


def _python_variants(formats: List[PythonFormat], rust: Optional[CargoVendor]) -> List[Builder]:
    return [
        BuildPythonPackage(application=application, format=fmt, rust=rust)
        for fmt in formats
        for application in (True, False)
    ]


def enumerate_builders(signals: SourceSignals) -> List[Builder]:
    """All applicable builders in preference order; never empty."""
    choices: List[Builder] = []
    if signals.has_go:
        choices.append(BuildGoModule())

    formats = signals.python_formats()
    for vendor in signals.cargo_vendors():
        choices.extend(_python_variants(formats, vendor))
        pair: List[Builder] = [MkDerivation(rust=vendor), BuildRustPackage(vendor=vendor)]
        if not signals.has_meson:
            pair.reverse()
        choices.extend(pair)

    choices.extend(_python_variants(formats, None))
    choices.append(MkDerivation())
    choices.append(MkDerivationNoCC())
    return choices
