"""Identifier case conversions used for Nix attribute and argument names."""
from __future__ import annotations

import re
from typing import List

_WORD = re.compile(r"[A-Z]+(?![a-z])[0-9]*|[A-Z]?[a-z]+[0-9]*|[0-9]+[a-z]*")


def words(text: str) -> List[str]:
    """Split on separators and case changes; digits stick to the word before them."""
    return _WORD.findall(text)


def kebab_case(text: str) -> str:
    """``PyYAML`` -> ``py-yaml``, ``foo_bar`` -> ``foo-bar``."""
    return "-".join(w.lower() for w in words(text))


def lower_camel(text: str) -> str:
    """``func .Env.UNKNOWN_VAR`` -> ``funcEnvUnknownVar``."""
    parts = [w.lower() for w in words(text)]
    if not parts:
        return ""
    return parts[0] + "".join(w.capitalize() for w in parts[1:])
