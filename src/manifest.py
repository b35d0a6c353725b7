"""Text fragments of the generated Nix expression that do not depend on the builder."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TextIO

from constants import Constants
from lang.python import PythonDependencies

logger = logging.getLogger(__name__)

UNFREE_LICENSE = f"licenses.unfree; # FIXME: {Constants.PROG_NAME} did not find a license"


def nix_string(value: str) -> str:
    """Quote ``value`` as a double-quoted Nix string."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("${", "\\${")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def normalize_description(description: str) -> str:
    """Trim non-alphanumeric characters at both ends and capitalize the first letter.

    >>> normalize_description("  a fast tool.  ")
    'A fast tool'
    """
    start, end = 0, len(description)
    while start < end and not description[start].isalnum():
        start += 1
    while end > start and not description[end - 1].isalnum():
        end -= 1
    trimmed = description[start:end]
    return trimmed[:1].upper() + trimmed[1:]


def _is_changelog(name: str) -> bool:
    lower = name.lower()
    return lower in Constants.CHANGELOG_FILE_NAMES or any(
        lower.startswith(prefix) for prefix in Constants.CHANGELOG_FILE_PREFIXES
    )


def find_changelog(src_dir: Path) -> Optional[str]:
    """Name of the first top-level changelog file, in name order."""
    try:
        entries = sorted(src_dir.iterdir())
    except OSError as exc:
        logger.warning("Cannot list %s: %s", src_dir, exc)
        return None
    for path in entries:
        if path.is_file() and _is_changelog(path.name):
            return path.name
    return None


def rank_licenses(licenses: Dict[str, float]) -> List[str]:
    """Most confident first; ties broken by name."""
    return [name for name, _ in sorted(licenses.items(), key=lambda item: (-item[1], item[0]))]


def license_value(licenses: Dict[str, float]) -> str:
    ranked = rank_licenses(licenses)
    if not ranked:
        return UNFREE_LICENSE
    if len(ranked) == 1:
        return f"licenses.{ranked[0]};"
    return "with licenses; [ " + "".join(f"{name} " for name in ranked) + "];"


def write_meta(
    out: TextIO,
    *,
    description: str,
    homepage: str,
    changelog: Optional[str],
    licenses: Dict[str, float],
    maintainers: Iterable[str],
    main_program: Optional[str],
    platforms: Optional[str],
) -> None:
    """Write the ``meta`` attribute set and close the derivation."""
    out.write("  meta = with lib; {\n")
    out.write(f"    description = {nix_string(normalize_description(description))};\n")
    out.write(f"    homepage = {nix_string(homepage)};\n")
    if changelog:
        # the url prefix interpolates ${src.rev}
        out.write(f'    changelog = "{changelog}";\n')
    out.write(f"    license = {license_value(licenses)}\n")
    out.write("    maintainers = with maintainers; [ " + "".join(f"{m} " for m in maintainers) + "];\n")
    if main_program:
        out.write(f"    mainProgram = {nix_string(main_program)};\n")
    if platforms:
        out.write(f"    {platforms};\n")
    out.write("  };\n}\n")


def write_python_dependencies(out: TextIO, deps: PythonDependencies, application: bool) -> None:
    """Write ``propagatedBuildInputs`` and ``passthru.optional-dependencies``."""
    scope = "with python3.pkgs; " if application else ""
    if deps.always:
        out.write(f"  propagatedBuildInputs = {scope}[\n")
        for name in sorted(deps.always):
            out.write(f"    {name}\n")
        out.write("  ];\n\n")

    optional = [(extra, names) for extra, names in sorted(deps.optional.items()) if names]
    if optional:
        out.write(f"  passthru.optional-dependencies = {scope}{{\n")
        for extra, names in optional:
            out.write(f"    {extra} = [\n")
            for name in sorted(names):
                out.write(f"      {name}\n")
            out.write("    ];\n")
        out.write("  };\n\n")


def write_imports_check(out: TextIO, module: str) -> None:
    out.write(f"  pythonImportsCheck = [ {nix_string(module)} ];\n\n")
