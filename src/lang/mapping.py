"""Generic interpreter for the dependency -> Nix input tables in ``tables/*.yaml``.

A table maps a dependency identifier to an ordered list of rules. Each rule
may be guarded by feature or version predicates and contributes native
inputs, build inputs, Apple frameworks, GStreamer libraries or environment
variables to an ``AllInputs``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, List, Mapping, Optional, Tuple

import semantic_version

from common.logging_utils import extra_context, is_debug_enabled
from inputs import ALWAYS, PLATFORM_CONDITIONS, PLATFORMS, AllInputs
from tables import load_table

logger = logging.getLogger(__name__)

CONDITIONS = dict(PLATFORM_CONDITIONS)

_RULE_KEYS = {
    "native", "build", "framework", "gst", "platform", "env",
    "when_feature", "unless_feature", "version_min", "version_below", "stop",
}


def _coerce_version(text: Optional[str]) -> Optional[semantic_version.Version]:
    if not text:
        return None
    try:
        return semantic_version.Version.coerce(str(text).lstrip("v"))
    except ValueError:
        return None


@dataclass(frozen=True)
class Rule:
    """One guarded contribution of a table entry."""

    native: Tuple[str, ...] = ()
    build: Tuple[str, ...] = ()
    framework: Tuple[str, ...] = ()
    gst: Tuple[str, ...] = ()
    platform: str = ALWAYS
    env: Tuple[Tuple[str, str], ...] = ()
    when_feature: Optional[str] = None
    unless_feature: Optional[str] = None
    version_min: Optional[str] = None
    version_below: Optional[str] = None
    stop: bool = False

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "Rule":
        unknown = set(data) - _RULE_KEYS
        if unknown:
            raise ValueError(f"{name}: unknown rule keys {sorted(unknown)}")
        platform = data.get("platform", ALWAYS)
        if platform not in PLATFORMS:
            raise ValueError(f"{name}: unknown platform {platform}")
        return cls(
            native=tuple(data.get("native", ())),
            build=tuple(data.get("build", ())),
            framework=tuple(data.get("framework", ())),
            gst=tuple(data.get("gst", ())),
            platform=platform,
            env=tuple((str(k), str(v)) for k, v in (data.get("env") or {}).items()),
            when_feature=data.get("when_feature"),
            unless_feature=data.get("unless_feature"),
            version_min=data.get("version_min"),
            version_below=data.get("version_below"),
            stop=bool(data.get("stop", False)),
        )

    def matches(self, features: Collection[str], version: Optional[str]) -> bool:
        """Evaluate the feature and version predicates.

        A version predicate never matches when the version is unknown or
        cannot be parsed.
        """
        if self.when_feature is not None and self.when_feature not in features:
            return False
        if self.unless_feature is not None and self.unless_feature in features:
            return False
        if self.version_min is not None or self.version_below is not None:
            parsed = _coerce_version(version)
            if parsed is None:
                return False
            if self.version_min is not None and parsed < _coerce_version(self.version_min):
                return False
            if self.version_below is not None and parsed >= _coerce_version(self.version_below):
                return False
        return True

    def apply(self, inputs: AllInputs) -> None:
        inputs.native(*self.native, platform=self.platform)
        inputs.build(*self.build, platform=self.platform)
        inputs.framework(*self.framework)
        inputs.gst(*self.gst)
        conditions = [CONDITIONS[self.platform]] if self.platform != ALWAYS else []
        for env_name, value in self.env:
            inputs.environ(env_name, value, *conditions)


@dataclass(frozen=True)
class MappingTable:
    """Dependency identifier -> ordered rules."""

    name: str
    rules: Dict[str, Tuple[Rule, ...]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "MappingTable":
        rules = {
            str(dep): tuple(Rule.from_dict(f"{name}:{dep}", entry) for entry in (entries or []))
            for dep, entries in data.items()
        }
        return cls(name=name, rules=rules)

    @classmethod
    def load(cls, name: str) -> "MappingTable":
        return cls.from_dict(name, load_table(name))

    def __contains__(self, dep: str) -> bool:
        return dep in self.rules

    def apply(
        self,
        inputs: AllInputs,
        dep: str,
        *,
        features: Collection[str] = (),
        version: Optional[str] = None,
    ) -> bool:
        """Apply the rules for ``dep``. Unknown identifiers are a silent no-op.

        Returns:
            bool: True when at least one rule contributed.
        """
        rules = self.rules.get(dep)
        if not rules:
            return False
        applied = False
        for rule in rules:
            if not rule.matches(features, version):
                continue
            rule.apply(inputs)
            applied = True
            if rule.stop:
                break
        if is_debug_enabled(logger):
            logger.debug(
                "Mapped dependency",
                extra=extra_context(
                    event="decision",
                    component="mapping",
                    action=self.name,
                    target=dep,
                    outcome="applied" if applied else "filtered"
                )
            )
        return applied


def apply_all(
    table: MappingTable,
    inputs: AllInputs,
    deps: List[Tuple[str, Optional[str], Collection[str]]],
) -> int:
    """Apply ``table`` to (name, version, features) triples; returns how many contributed."""
    return sum(
        1 for name, version, features in deps
        if table.apply(inputs, name, features=features, version=version)
    )
