"""Cargo support: dependency resolution, vendor hashes and embedded lock files.

Dependencies are resolved by cargo itself (``cargo metadata``), which also
reports the features enabled for every package so that feature-guarded
table rules can be evaluated. When cargo is unavailable the packages listed
in ``Cargo.lock`` are mapped without feature information.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Tuple

from common.errors import CommandError, NixDraftError
from common.logging_utils import extra_context, is_debug_enabled
from common.process import get_stdout
from constants import Constants
from hashing import FAKE_HASH, fod_hash_or_fake
from inputs import AllInputs
from lang.mapping import MappingTable, apply_all

logger = logging.getLogger(__name__)

CARGO_TOML = "Cargo.toml"
CARGO_LOCK = "Cargo.lock"

GIT_SOURCE = re.compile(r"^git\+([^?]+)(\?(rev|tag|branch)=(.*))?#(.*)$")


def _loads_toml(text: str) -> Dict[str, Any]:
    try:
        import tomllib as toml  # type: ignore
    except Exception:  # pylint: disable=broad-exception-caught
        import tomli as toml  # type: ignore

    return toml.loads(text) or {}


@dataclass(frozen=True)
class CargoPackage:
    """One resolved package: name, exact version, source and enabled features."""

    name: str
    version: str
    source: Optional[str] = None
    features: Tuple[str, ...] = ()

    def git_source(self) -> Optional[Tuple[str, str]]:
        """(repository url, commit) for ``git+`` sources, None otherwise."""
        if not self.source:
            return None
        m = GIT_SOURCE.match(self.source)
        if m is None:
            return None
        return m.group(1), m.group(5)


def parse_cargo_lock(text: str) -> Optional[List[CargoPackage]]:
    """Return the ``[[package]]`` entries of a lock file, None if it does not parse."""
    try:
        data = _loads_toml(text)
    except ValueError as e:
        logger.warning("Failed to parse %s: %s", CARGO_LOCK, e)
        return None
    packages = []
    for item in data.get("package") or []:
        if not isinstance(item, dict):
            continue
        name, version = item.get("name"), item.get("version")
        if isinstance(name, str) and isinstance(version, str):
            source = item.get("source")
            packages.append(
                CargoPackage(name=name, version=version, source=source if isinstance(source, str) else None)
            )
    return packages


def read_cargo_lock(path: Path) -> Optional[List[CargoPackage]]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return parse_cargo_lock(fh.read())
    except OSError as e:
        logger.warning("Failed to read %s: %s", path, e)
        return None


def lock_has_git_source(path: Path) -> bool:
    """True when any lock entry is fetched from a git repository."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return any(line.startswith('source = "git+') for line in fh)
    except OSError:
        return False


def parse_cargo_metadata(stdout: str) -> List[CargoPackage]:
    """Turn ``cargo metadata --format-version 1`` output into resolved packages.

    Only packages present in the resolve graph are returned, each with the
    features cargo enabled for it.
    """
    data = json.loads(stdout)
    nodes = (data.get("resolve") or {}).get("nodes") or []
    features = {node.get("id"): tuple(node.get("features") or ()) for node in nodes}
    packages = []
    for pkg in data.get("packages") or []:
        pkg_id = pkg.get("id")
        if pkg_id not in features:
            continue
        packages.append(
            CargoPackage(
                name=pkg.get("name", ""),
                version=pkg.get("version", ""),
                source=pkg.get("source"),
                features=features[pkg_id],
            )
        )
    return packages


def _writable_copy(src_dir: Path, dest: Path) -> Path:
    # store paths are read-only; cargo needs to write Cargo.lock at the root
    root = dest / "src"
    shutil.copytree(src_dir, root, symlinks=True, ignore=shutil.ignore_patterns(".git", "target"))
    os.chmod(root, 0o755)
    lock = root / CARGO_LOCK
    if lock.exists():
        os.chmod(lock, 0o644)
    return root


async def cargo_resolve(src_dir: Path) -> Tuple[List[CargoPackage], str]:
    """Resolve the workspace at ``src_dir`` with cargo.

    Returns:
        tuple: (resolved packages with features, text of the lock file cargo used or generated)

    Raises:
        CommandError: cargo is missing or failed to resolve.
    """
    with tempfile.TemporaryDirectory(prefix=f"{Constants.PROG_NAME}-cargo-") as tmp:
        root = await asyncio.to_thread(_writable_copy, src_dir, Path(tmp))
        stdout = await get_stdout(
            [
                Constants.CARGO,
                "metadata",
                "--format-version",
                "1",
                "--manifest-path",
                str(root / CARGO_TOML),
            ]
        )
        with open(root / CARGO_LOCK, "r", encoding="utf-8") as fh:
            lock_text = fh.read()
    try:
        return parse_cargo_metadata(stdout), lock_text
    except ValueError as e:
        raise CommandError([Constants.CARGO, "metadata"], 0, stdout, f"unparseable output: {e}") from e


async def resolve_rust_packages(src_dir: Path) -> List[CargoPackage]:
    """Resolved packages, degrading to the plain lock file when cargo fails."""
    try:
        packages, _ = await cargo_resolve(src_dir)
        return packages
    except (CommandError, OSError) as e:
        logger.warning("cargo could not resolve dependencies, falling back to %s: %s", CARGO_LOCK, e)
    lock = src_dir / CARGO_LOCK
    if not lock.is_file():
        return []
    return read_cargo_lock(lock) or []


def load_rust_dependencies(table: MappingTable, inputs: AllInputs, packages: List[CargoPackage]) -> None:
    mapped = apply_all(table, inputs, [(p.name, p.version, p.features) for p in packages])
    if is_debug_enabled(logger):
        logger.debug(
            "Mapped crates",
            extra=extra_context(
                event="mapping_done",
                component="rust",
                action="load_rust_dependencies",
                count=len(packages),
                mapped=mapped
            )
        )


async def map_rust_dependencies(table: MappingTable, inputs: AllInputs, src_dir: Path) -> None:
    load_rust_dependencies(table, inputs, await resolve_rust_packages(src_dir))


def cargo_vendor_expr(pname: str, version: str, src: str, nixpkgs: str) -> str:
    return (
        f"(import({nixpkgs}){{}}).rustPlatform.fetchCargoVendor"
        f'{{name="{pname}-{version}";src={src};hash="{FAKE_HASH}";}}'
    )


async def cargo_deps_hash(
    table: MappingTable,
    inputs: AllInputs,
    pname: str,
    version: str,
    src: str,
    src_dir: Path,
    nixpkgs: str,
) -> str:
    """Hash of the vendored crates, computed while dependencies are mapped.

    Mapping writes into a fresh AllInputs that is merged once both tasks
    have finished. Without a lock file no vendor hash can exist and the
    placeholder is returned.
    """
    mapped = AllInputs()
    if not (src_dir / CARGO_LOCK).is_file():
        logger.error("%s is missing, leaving a placeholder cargoHash", CARGO_LOCK)
        await map_rust_dependencies(table, mapped, src_dir)
        inputs.merge(mapped)
        return FAKE_HASH

    found, _ = await asyncio.gather(
        fod_hash_or_fake(cargo_vendor_expr(pname, version, src, nixpkgs), "cargoHash"),
        map_rust_dependencies(table, mapped, src_dir),
    )
    inputs.merge(mapped)
    return found


@dataclass
class CargoLockFile:
    """Lock file written next to the manifest for ``importCargoLock``."""

    missing: bool
    packages: Optional[List[CargoPackage]]


async def load_cargo_lock(
    table: MappingTable,
    inputs: AllInputs,
    out_dir: Path,
    src_dir: Path,
    keep_existing: bool,
) -> CargoLockFile:
    """Place a ``Cargo.lock`` in ``out_dir`` and map the crates it pins.

    An existing lock in ``out_dir`` is reused when ``keep_existing`` is set.
    Otherwise the source's lock is copied, or a new one is generated by
    cargo; ``missing`` records that the source tree ships no lock file.

    Raises:
        NixDraftError: the lock file had to be generated and cargo failed.
    """
    target = out_dir / CARGO_LOCK
    source_lock = src_dir / CARGO_LOCK
    missing = not source_lock.is_file()

    resolved: Optional[List[CargoPackage]] = None
    if keep_existing and target.is_file():
        packages = read_cargo_lock(target)
    elif not missing:
        try:
            shutil.copyfile(source_lock, target)
        except OSError as e:
            logger.error("Failed to copy lock file to %s: %s", target, e)
        packages = read_cargo_lock(source_lock)
    else:
        try:
            resolved, lock_text = await cargo_resolve(src_dir)
        except (CommandError, OSError) as e:
            raise NixDraftError(f"Failed to generate lock file to {target}") from e
        with open(target, "w", encoding="utf-8") as fh:
            fh.write(lock_text)
        packages = parse_cargo_lock(lock_text)

    if resolved is not None:
        load_rust_dependencies(table, inputs, resolved)
    elif packages:
        await map_rust_dependencies(table, inputs, src_dir)
    return CargoLockFile(missing=missing, packages=packages)


async def _git_output_hash(pkg: CargoPackage) -> Optional[Tuple[str, str]]:
    git = pkg.git_source()
    if git is None:
        return None
    url, rev = git
    try:
        found = await get_stdout([Constants.NURL, url, rev, "-Hf", "fetchgit"])
    except CommandError as e:
        logger.warning("Failed to hash git dependency %s: %s", pkg.name, e.detail())
        return None
    return f"{pkg.name}-{pkg.version}", found.strip()


async def git_output_hashes(packages: List[CargoPackage]) -> Dict[str, str]:
    """``outputHashes`` entries for every git-sourced crate, hashed concurrently."""
    results = await asyncio.gather(*(_git_output_hash(pkg) for pkg in packages))
    return dict(sorted(item for item in results if item is not None))


async def write_cargo_lock(out: TextIO, lock: CargoLockFile) -> None:
    """Write the ``importCargoLock`` argument set and, if needed, the lock symlink."""
    out.write("{\n    lockFile = ./Cargo.lock;\n")
    hashes = await git_output_hashes(lock.packages or [])
    if hashes:
        out.write("    outputHashes = {\n")
        for name, found in hashes.items():
            out.write(f'      "{name}" = "{found}";\n')
        out.write("    };\n")
    out.write("  };\n\n")

    if lock.missing:
        out.write("  postPatch = ''\n    ln -s ${./Cargo.lock} Cargo.lock\n  '';\n\n")
