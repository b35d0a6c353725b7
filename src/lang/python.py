"""Python project metadata: pyproject.toml, requirements.txt and PEP 508 requirement lists.

Dependencies guarded by an ``extra == "<name>"`` marker are filed under that
extra; everything else is a runtime dependency.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

import requirements
from packaging.markers import Marker
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from inputs import AllInputs

logger = logging.getLogger(__name__)

REQUIREMENTS_FILE = "requirements.txt"
PYPROJECT_FILE = "pyproject.toml"
MATURIN_HOOK = "rustPlatform.maturinBuildHook"


def _load_toml(path: Path) -> Dict[str, Any]:
    try:
        import tomllib as toml  # type: ignore
    except Exception:  # pylint: disable=broad-exception-caught
        import tomli as toml  # type: ignore

    with open(path, "rb") as f:
        return toml.load(f) or {}


@dataclass
class PythonDependencies:
    """Runtime dependencies plus optional ones grouped by extra."""

    always: Set[str] = field(default_factory=set)
    optional: Dict[str, Set[str]] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.always and not any(self.optional.values())

    def add(self, name: str, extras: Iterable[str] = ()) -> None:
        extras = list(extras)
        if not extras:
            self.always.add(name)
            return
        for extra in extras:
            self.optional.setdefault(extra, set()).add(name)


# PEP 508 marker comparisons against ``extra`` in either operand order, as
# packaging renders them: ``extra == "test"`` or ``"test" == extra``.
_EXTRA_RE = re.compile(
    r"""\bextra\s*==\s*(['"])(?P<rhs>[^'"]+)\1"""
    r"""|(['"])(?P<lhs>[^'"]+)\3\s*==\s*extra\b"""
)


def marker_extras(marker: Optional[Marker]) -> List[str]:
    """Extras a requirement marker depends on, in order of appearance."""
    if marker is None:
        return []
    return [m.group("rhs") or m.group("lhs") for m in _EXTRA_RE.finditer(str(marker))]


def parse_requirement(text: str) -> Optional[Requirement]:
    try:
        return Requirement(text.strip())
    except InvalidRequirement:
        logger.debug("Skipping unparseable requirement: %s", text)
        return None


def get_python_dependencies(specs: Iterable[str]) -> PythonDependencies:
    """Split PEP 508 requirement strings into runtime and per-extra dependencies."""
    deps = PythonDependencies()
    for spec in specs:
        if not isinstance(spec, str):
            continue
        req = parse_requirement(spec)
        if req is None:
            continue
        deps.add(canonicalize_name(req.name), marker_extras(req.marker))
    return deps


def _requirement_lines(body: str) -> Iterable[str]:
    """Logical requirement lines: continuations joined, comments and options dropped."""
    pending = ""
    for raw in body.splitlines():
        line = raw.split(" #", 1)[0].rstrip()
        if line.endswith("\\"):
            pending += line[:-1] + " "
            continue
        line = (pending + line).strip()
        pending = ""
        if line and not line.startswith(("#", "-")):
            yield line


def parse_requirements_txt(src_dir: Path) -> Optional[PythonDependencies]:
    """Read ``requirements.txt``; None when the file does not exist.

    Lines that do not parse are logged and skipped.
    """
    path = src_dir / REQUIREMENTS_FILE
    if not path.is_file():
        return None
    try:
        with open(path, "r", encoding="utf-8") as fh:
            body = fh.read()
    except (IOError, ValueError) as e:
        logger.warning("Failed to read %s: %s", path, e)
        return None

    deps = PythonDependencies()
    for line in _requirement_lines(body):
        try:
            parsed = list(requirements.parse(line))
        except ValueError as e:
            logger.warning("Skipping unparseable line in %s: %s (%s)", path, line, e)
            continue
        for req in parsed:
            name = getattr(req, "name", None)
            if not isinstance(name, str) or not name:
                continue
            full = parse_requirement(line) if ";" in line else None
            deps.add(canonicalize_name(name), marker_extras(full.marker) if full else [])
    return deps


class Pyproject:
    """Accessors over a parsed pyproject.toml covering PEP 621 and Poetry layouts."""

    def __init__(self, data: Dict[str, Any]):
        self.data = data if isinstance(data, dict) else {}

    @classmethod
    def from_path(cls, path: Path) -> Optional["Pyproject"]:
        try:
            return cls(_load_toml(path))
        except FileNotFoundError:
            return None
        except (IOError, ValueError) as e:
            logger.warning("Failed to parse %s: %s", path, e)
            return None

    def _table(self, *keys: str) -> Dict[str, Any]:
        node: Any = self.data
        for key in keys:
            node = node.get(key) if isinstance(node, dict) else None
        return node if isinstance(node, dict) else {}

    @property
    def project(self) -> Dict[str, Any]:
        return self._table("project")

    @property
    def poetry(self) -> Dict[str, Any]:
        return self._table("tool", "poetry")

    def get_name(self) -> Optional[str]:
        for table in (self.project, self.poetry):
            name = table.get("name")
            if isinstance(name, str) and name:
                return name
        return None

    def get_license(self) -> Optional[str]:
        """License expression from ``project.license`` or Poetry, None for tables."""
        for table in (self.project, self.poetry):
            value = table.get("license")
            if isinstance(value, str) and value.strip():
                return value
        return None

    def build_requires(self) -> List[str]:
        requires = self._table("build-system").get("requires")
        return [r for r in requires if isinstance(r, str)] if isinstance(requires, list) else []

    def load_build_dependencies(self, inputs: AllInputs, application: bool) -> None:
        """Add build-system requirements as native build inputs."""
        for spec in self.build_requires():
            req = parse_requirement(spec)
            if req is None:
                continue
            name = canonicalize_name(req.name)
            if name == "maturin":
                inputs.native(MATURIN_HOOK)
            elif application:
                inputs.native(f"python3.pkgs.{name}")
            else:
                inputs.native(name)

    def get_dependencies(self) -> Optional[PythonDependencies]:
        """Runtime and optional dependencies, None when none are declared."""
        poetry_deps = self.poetry.get("dependencies")
        if isinstance(poetry_deps, dict):
            deps = PythonDependencies()
            for name, spec in poetry_deps.items():
                if name == "python":
                    continue
                if isinstance(spec, dict) and spec.get("optional"):
                    continue
                deps.add(canonicalize_name(name))
            extras = self.poetry.get("extras")
            for extra, names in (extras.items() if isinstance(extras, dict) else []):
                for name in names if isinstance(names, list) else []:
                    deps.add(canonicalize_name(name), [extra])
            return deps

        always = self.project.get("dependencies")
        optional = self.project.get("optional-dependencies")
        if always is None and optional is None:
            return None
        deps = get_python_dependencies(always if isinstance(always, list) else [])
        if isinstance(optional, dict):
            for extra, specs in optional.items():
                group = deps.optional.setdefault(extra, set())
                for spec in specs if isinstance(specs, list) else []:
                    req = parse_requirement(spec) if isinstance(spec, str) else None
                    if req is not None:
                        group.add(canonicalize_name(req.name))
        return deps


def load_python_dependencies(src_dir: Path, pyproject: Optional[Pyproject]) -> Optional[PythonDependencies]:
    """Dependencies from pyproject.toml, falling back to requirements.txt."""
    if pyproject is not None:
        deps = pyproject.get_dependencies()
        if deps is not None:
            return deps
    return parse_requirements_txt(src_dir)


def python_import_name(pname: str, pyproject: Optional[Pyproject]) -> str:
    """Best guess of the importable module name for ``pythonImportsCheck``."""
    name = (pyproject.get_name() if pyproject else None) or pname
    return name.replace("-", "_").replace(".", "_").lower()
