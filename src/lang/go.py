"""Go modules: go.sum dependency mapping, vendor hashes and goreleaser ldflags."""
from __future__ import annotations

import logging
import re
import shlex
from pathlib import Path
from typing import Any, List, Optional, TextIO, Tuple

import yaml

from common.naming import lower_camel
from constants import Constants
from hashing import FAKE_HASH, fod_hash_or_fake
from inputs import AllInputs
from lang.mapping import MappingTable, apply_all

logger = logging.getLogger(__name__)

GO_MOD = "go.mod"
GO_SUM = "go.sum"
VENDOR_DIR = "vendor"

_TEMPLATE = re.compile(r"\{\{\s*(.*?)\s*}}")

# https://goreleaser.com/customization/templates
_TEMPLATE_VARS = {
    ".ProjectName": "${pname}",
    ".Version": "${version}",
    ".RawVersion": "${version}",
    ".Branch": "${src.rev}",
    ".PrefixedTag": "${src.rev}",
    ".Tag": "${src.rev}",
    ".ShortCommit": "${src.rev}",
    ".FullCommit": "${src.rev}",
    ".Commit": "${src.rev}",
    ".Summary": "${src.rev}",
    ".PrefixedSummary": "${src.rev}",
    ".Major": "${lib.versions.major version}",
    ".Minor": "${lib.versions.minor version}",
    ".Patch": "${lib.versions.patch version}",
    ".Date": "1970-01-01T00:00:00Z",
    ".CommitDate": "1970-01-01T00:00:00Z",
    ".Timestamp": "0",
    ".CommitTimestamp": "0",
}

DEFAULT_LDFLAGS = '  ldflags = [ "-s" "-w" ];\n\n'


def parse_go_sum_line(line: str) -> Optional[Tuple[str, str]]:
    """(module path, version) of one go.sum line.

    The version loses its ``v`` prefix and any ``/go.mod`` suffix, so both
    lines recorded for one module version yield the same pair.

    >>> parse_go_sum_line("github.com/spf13/cobra v1.7.0/go.mod h1:...")
    ('github.com/spf13/cobra', '1.7.0')
    """
    fields = line.split()
    if len(fields) < 2 or not fields[1].startswith("v"):
        return None
    version = fields[1][1:].split("/", 1)[0]
    if not version:
        return None
    return fields[0], version


def parse_go_sum(text: str) -> List[Tuple[str, str]]:
    """Distinct (module, version) pairs in order of first appearance."""
    seen = set()
    modules = []
    for line in text.splitlines():
        pair = parse_go_sum_line(line)
        if pair is not None and pair not in seen:
            seen.add(pair)
            modules.append(pair)
    return modules


def read_go_sum(src_dir: Path) -> Optional[str]:
    try:
        with open(src_dir / GO_SUM, "r", encoding="utf-8") as fh:
            return fh.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("Failed to read %s: %s", GO_SUM, e)
        return None


def load_go_dependencies(table: MappingTable, inputs: AllInputs, go_sum: str) -> int:
    """Map every module in ``go_sum``; returns how many had a table entry."""
    return apply_all(table, inputs, [(name, version, ()) for name, version in parse_go_sum(go_sum)])


def go_vendor_expr(pname: str, version: str, src: str, nixpkgs: str) -> str:
    return (
        f"(import({nixpkgs}){{}}).buildGoModule"
        f'{{pname="{pname}";version="{version}";src={src};vendorHash="{FAKE_HASH}";}}'
    )


async def go_vendor_hash(
    pname: str, version: str, src: str, src_dir: Path, go_sum: Optional[str], nixpkgs: str
) -> str:
    """The ``vendorHash`` value as a Nix expression.

    ``null`` when the sources vendor their modules or have no module
    checksums, otherwise the quoted hash of the module download.
    """
    if (src_dir / VENDOR_DIR).is_dir() or not go_sum:
        return "null"
    found = await fod_hash_or_fake(go_vendor_expr(pname, version, src, nixpkgs), "vendorHash")
    return f'"{found}"'


def substitute_templates(ldflags: str) -> str:
    """Replace goreleaser template actions with Nix interpolations."""
    return _TEMPLATE.sub(
        lambda m: _TEMPLATE_VARS.get(m.group(1), "${" + lower_camel(m.group(1)) + "}"),
        ldflags,
    )


def _goreleaser_ldflags(src_dir: Path) -> Optional[List[str]]:
    for name in Constants.GORELEASER_FILES:
        path = src_dir / name
        if not path.is_file():
            continue
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data: Any = yaml.safe_load(fh)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Failed to parse %s: %s", path, e)
            return None
        builds = data.get("builds") if isinstance(data, dict) else None
        if not isinstance(builds, list) or not builds or not isinstance(builds[0], dict):
            return None
        ldflags = builds[0].get("ldflags")
        if isinstance(ldflags, str):
            return [ldflags]
        if isinstance(ldflags, list):
            return [str(flag) for flag in ldflags]
        return None
    return None


def process_ldflags(raw: List[str]) -> List[str]:
    """Split templated flag strings and join ``-X name=value`` pairs into one flag."""
    tokens: List[str] = []
    for ldflags in raw:
        try:
            tokens.extend(shlex.split(substitute_templates(ldflags)))
        except ValueError as e:
            logger.warning("Skipping unparseable ldflags %r: %s", ldflags, e)

    flags: List[str] = []
    it = iter(tokens)
    for flag in it:
        if flag == "-X":
            value = next(it, None)
            if value is not None:
                flag = f"-X={value}"
        flags.append(flag)
    return flags


def write_ldflags(out: TextIO, src_dir: Path) -> None:
    """Write ``ldflags`` from the first goreleaser build, or ``-s -w`` without one."""
    raw = _goreleaser_ldflags(src_dir)
    if raw is None:
        out.write(DEFAULT_LDFLAGS)
        return

    flags = process_ldflags(raw)
    if not flags:
        return
    if sum(len(flag) for flag in flags) > 16:
        out.write("  ldflags = [\n")
        for flag in flags:
            out.write(f'    "{flag}"\n')
        out.write("  ];\n\n")
    else:
        out.write("  ldflags = [" + "".join(f' "{flag}"' for flag in flags) + " ];\n\n")
