"""Build-input aggregation: platform-bucketed, deduplicated Nix input sets.

Inputs are collected into seven buckets (always plus darwin/linux, each also
per architecture) and rendered as a ``++``-joined chain of lists guarded by
``lib.optionals`` conditions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, TextIO, Tuple

logger = logging.getLogger(__name__)

ALWAYS = "always"

# Emission precedence; the condition guards every non-always bucket.
PLATFORM_CONDITIONS: Tuple[Tuple[str, str], ...] = (
    (ALWAYS, ""),
    ("darwin", "stdenv.isDarwin"),
    ("aarch64_darwin", "(stdenv.isDarwin && stdenv.isAarch64)"),
    ("x86_64_darwin", "(stdenv.isDarwin && stdenv.isx86_64)"),
    ("linux", "stdenv.isLinux"),
    ("aarch64_linux", "(stdenv.isLinux && stdenv.isAarch64)"),
    ("x86_64_linux", "(stdenv.isLinux && stdenv.isx86_64)"),
)
PLATFORMS: Tuple[str, ...] = tuple(name for name, _ in PLATFORM_CONDITIONS)

FRAMEWORK_PREFIX = "darwin.apple_sdk.frameworks."
GSTREAMER_PREFIX = "gst_all_1."


@dataclass
class Inputs:
    """One input field (native or regular build inputs) split per platform."""

    always: Set[str] = field(default_factory=set)
    darwin: Set[str] = field(default_factory=set)
    aarch64_darwin: Set[str] = field(default_factory=set)
    x86_64_darwin: Set[str] = field(default_factory=set)
    linux: Set[str] = field(default_factory=set)
    aarch64_linux: Set[str] = field(default_factory=set)
    x86_64_linux: Set[str] = field(default_factory=set)

    def bucket(self, platform: str) -> Set[str]:
        if platform not in PLATFORMS:
            raise ValueError(f"unknown platform bucket: {platform}")
        return getattr(self, platform)

    def insert(self, name: str, platform: str = ALWAYS) -> bool:
        """Add ``name`` to a bucket. Returns False when nothing changed.

        Every name lives in one bucket only. ``always`` takes precedence over
        any platform bucket; between two platform buckets the first insert
        wins and the clash is reported.
        """
        target = self.bucket(platform)
        if name in target:
            return False
        if platform == ALWAYS:
            for other in PLATFORMS[1:]:
                getattr(self, other).discard(name)
            target.add(name)
            return True
        if name in self.always:
            return False
        current = self.platform_of(name)
        if current is not None:
            logger.warning(
                "Input %s requested for %s but already present for %s",
                name,
                platform,
                current,
            )
            return False
        target.add(name)
        return True

    def platform_of(self, name: str) -> Optional[str]:
        for platform in PLATFORMS:
            if name in getattr(self, platform):
                return platform
        return None

    def is_empty(self) -> bool:
        return not any(getattr(self, p) for p in PLATFORMS)

    def merge(self, other: "Inputs") -> None:
        for platform in PLATFORMS:
            for name in sorted(other.bucket(platform)):
                self.insert(name, platform)

    def platform_specific(self) -> Iterator[str]:
        """Names in every non-always bucket, bucket by bucket, sorted within each."""
        for platform in PLATFORMS[1:]:
            yield from sorted(getattr(self, platform))


@dataclass
class AllInputs:
    """Everything a dependency mapper may contribute to a derivation."""

    native_build_inputs: Inputs = field(default_factory=Inputs)
    build_inputs: Inputs = field(default_factory=Inputs)
    env: Dict[str, Tuple[str, List[str]]] = field(default_factory=dict)

    def native(self, *names: str, platform: str = ALWAYS) -> None:
        for name in names:
            self.native_build_inputs.insert(name, platform)

    def build(self, *names: str, platform: str = ALWAYS) -> None:
        for name in names:
            self.build_inputs.insert(name, platform)

    def framework(self, *names: str) -> None:
        """Apple SDK frameworks, only needed on darwin."""
        self.build(*(FRAMEWORK_PREFIX + name for name in names), platform="darwin")

    def gst(self, *names: str) -> None:
        """GStreamer libraries from ``gst_all_1``."""
        self.build(*(GSTREAMER_PREFIX + name for name in names))

    def environ(self, name: str, value: str, *conditions: str) -> None:
        """Set an environment variable; ``value`` is a Nix expression."""
        self.env[name] = (value, list(conditions))

    def merge(self, other: "AllInputs") -> None:
        self.native_build_inputs.merge(other.native_build_inputs)
        self.build_inputs.merge(other.build_inputs)
        for name, (value, conditions) in other.env.items():
            self.environ(name, value, *conditions)


def write_inputs(out: TextIO, inputs: Inputs, name: str) -> bool:
    """Write ``  <name> = [...] ++ lib.optionals cond [...];`` for non-empty buckets.

    Args:
        out: Text sink.
        inputs: Buckets to render.
        name: Attribute name, e.g. ``buildInputs``.

    Returns:
        bool: False when every bucket was empty and nothing was written.
    """
    lists = [
        (f"lib.optionals {condition} " if condition else "", inputs.bucket(platform))
        for platform, condition in PLATFORM_CONDITIONS
        if inputs.bucket(platform)
    ]
    if not lists:
        return False

    out.write(f"  {name} =")
    for index, (prefix, names) in enumerate(lists):
        out.write(" " if index == 0 else " ++ ")
        out.write(prefix)
        _write_input_list(out, names)
    out.write(";\n\n")
    return True


def _write_input_list(out: TextIO, names: Set[str]) -> None:
    out.write("[\n")
    for name in sorted(names):
        out.write(f"    {name}\n")
    out.write("  ]")


def write_lambda_input(out: TextIO, written: Set[str], name: str) -> None:
    """Declare ``name`` as a function argument once."""
    if name not in written:
        written.add(name)
        out.write(f", {name}\n")


def _write_lambda_inputs(out: TextIO, written: Set[str], inputs: Inputs) -> bool:
    non_empty = False
    for name in sorted(inputs.always):
        non_empty = True
        write_lambda_input(out, written, name.split(".")[0])
    for name in inputs.platform_specific():
        non_empty = True
        write_lambda_input(out, written, "stdenv")
        write_lambda_input(out, written, name.split(".")[0])
    return non_empty


def write_all_lambda_inputs(out: TextIO, inputs: AllInputs, written: Set[str]) -> Tuple[bool, bool]:
    """Write the function arguments needed by both input fields.

    Only the head of a dotted name (``darwin`` for
    ``darwin.apple_sdk.frameworks.Security``) is declared. ``written`` holds
    names already declared and is updated in place.

    Returns:
        tuple: (native inputs non-empty, build inputs non-empty)
    """
    return (
        _write_lambda_inputs(out, written, inputs.native_build_inputs),
        _write_lambda_inputs(out, written, inputs.build_inputs),
    )


def write_env(out: TextIO, inputs: AllInputs) -> None:
    """Write the ``env`` attribute set, sorted by variable name."""
    if not inputs.env:
        return
    out.write("  env = {\n")
    for name in sorted(inputs.env):
        value, conditions = inputs.env[name]
        if conditions:
            value = f"lib.optionalString ({' && '.join(conditions)}) {value}"
        out.write(f"    {name} = {value};\n")
    out.write("  };\n\n")
