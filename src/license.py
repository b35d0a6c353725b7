"""License identification: SPDX expressions and license file texts to nixpkgs attributes."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from packaging.licenses import InvalidLicenseExpression, canonicalize_license_expression

from constants import Constants
from tables import load_table

logger = logging.getLogger(__name__)

_OPERATORS = {"AND", "OR", "WITH"}
_TOKEN_RE = re.compile(r"[()\s/,]+")
_QUOTES_RE = re.compile(r"[\"'`*]")
_SPACE_RE = re.compile(r"\s+")
MAX_LICENSE_BYTES = 128 * 1024


def normalize_text(text: str) -> str:
    """Lower-case, drop quoting characters and collapse whitespace."""
    return _SPACE_RE.sub(" ", _QUOTES_RE.sub("", text.lower())).strip()


@dataclass(frozen=True)
class LicenseStore:
    """SPDX to nixpkgs license table plus the phrases used to recognise license files."""

    spdx: Dict[str, str] = field(default_factory=dict)
    aliases: Dict[str, str] = field(default_factory=dict)
    anchors: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()

    @classmethod
    def load(cls) -> "LicenseStore":
        table = load_table("licenses")
        anchors = tuple(
            (entry["id"], tuple(normalize_text(p) for p in entry.get("phrases", [])))
            for entry in table.get("anchors", [])
        )
        return cls(
            spdx=dict(table.get("spdx", {})),
            aliases={k.lower(): v for k, v in table.get("aliases", {}).items()},
            anchors=anchors,
        )

    def nix_license(self, spdx_id: str) -> Optional[str]:
        """Return the nixpkgs attribute for an SPDX id, case-insensitively."""
        found = self.spdx.get(spdx_id)
        if found:
            return found
        lowered = spdx_id.lower()
        for key, value in self.spdx.items():
            if key.lower() == lowered:
                return value
        return None

    def scan_license(self, text: str) -> Optional[Tuple[str, float]]:
        """Identify a license text by anchor phrases.

        Returns:
            tuple: (SPDX id, confidence in [0, 1]) for the best match, or None
            when no phrase of any license appears.
        """
        haystack = normalize_text(text)
        best: Optional[Tuple[str, float]] = None
        for spdx_id, phrases in self.anchors:
            if not phrases:
                continue
            matched = sum(1 for phrase in phrases if phrase in haystack)
            if not matched:
                continue
            score = matched / len(phrases)
            if best is None or score > best[1]:
                best = (spdx_id, score)
        return best

    def parse_expression(self, expression: str, source: str = "") -> List[str]:
        """Map an SPDX expression to the nixpkgs licenses it names.

        Exceptions after ``WITH`` are dropped. Unknown identifiers are logged
        and skipped. Free-form names such as ``MIT License`` are accepted
        through the alias table.

        Args:
            expression: e.g. ``MIT OR Apache-2.0``.
            source: Where the expression came from, for log messages.
        """
        text = expression.strip()
        if not text:
            return []
        alias = self.aliases.get(text.lower())
        if alias:
            text = alias
        try:
            text = canonicalize_license_expression(text)
        except InvalidLicenseExpression:
            logger.debug("Non-canonical license expression from %s: %s", source or "unknown", text)

        licenses: List[str] = []
        skip_next = False
        for token in _TOKEN_RE.split(text):
            if not token:
                continue
            upper = token.upper()
            if upper in _OPERATORS:
                skip_next = upper == "WITH"
                continue
            if skip_next:
                skip_next = False
                continue
            nix = self.nix_license(token)
            if nix is None:
                logger.debug("Unknown license %s from %s", token, source or "unknown")
            elif nix not in licenses:
                licenses.append(nix)
        return licenses


def _matches_prefix(name: str, prefixes: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(lowered.startswith(prefix) for prefix in prefixes)


def scan_license_files(store: LicenseStore, src_dir: Path) -> Dict[str, float]:
    """Scan top-level license files of a source tree.

    Returns:
        dict: nixpkgs license attribute -> confidence, only for matches at or
        above the detection threshold.
    """
    found: Dict[str, float] = {}
    try:
        entries = sorted(src_dir.iterdir())
    except OSError as exc:
        logger.warning("Cannot list %s: %s", src_dir, exc)
        return found

    for path in entries:
        if not path.is_file() or not _matches_prefix(path.name, Constants.LICENSE_FILE_PREFIXES):
            continue
        try:
            with open(path, "rb") as fh:
                text = fh.read(MAX_LICENSE_BYTES).decode("utf-8", errors="ignore")
        except OSError as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            continue
        result = store.scan_license(text)
        if result is None or result[1] < Constants.LICENSE_CONFIDENCE:
            continue
        nix = store.nix_license(result[0])
        if nix:
            logger.debug("License found in %s: %s", path.name, nix)
            found.setdefault(nix, result[1])
    return found

