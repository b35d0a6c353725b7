"""Declarative lookup tables shipped with the package (YAML)."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

TABLE_DIR = Path(__file__).resolve().parent


def load_table(name: str) -> Dict[str, Any]:
    """Load ``<name>.yaml`` from this package.

    Args:
        name: Table name without extension, e.g. ``"rust"``.

    Returns:
        dict: Parsed mapping; an empty file yields an empty dict.
    """
    path = TABLE_DIR / f"{name}.yaml"
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"table {name} must be a mapping, got {type(data).__name__}")
    logger.debug("Loaded table %s with %d entries", name, len(data))
    return data
