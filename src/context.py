"""Immutable state shared by every pipeline stage, built once per run."""
from __future__ import annotations

from dataclasses import dataclass

from lang.mapping import MappingTable
from license import LicenseStore


@dataclass(frozen=True)
class PipelineContext:
    """License store and dependency tables. Passed explicitly, never global."""

    licenses: LicenseStore
    rust_table: MappingTable
    go_table: MappingTable

    @classmethod
    def load(cls) -> "PipelineContext":
        return cls(
            licenses=LicenseStore.load(),
            rust_table=MappingTable.load("rust"),
            go_table=MappingTable.load("go"),
        )
