"""Tests for builder detection."""

from builder import (
    BuildGoModule,
    BuildPythonPackage,
    BuildRustPackage,
    CargoVendor,
    MkDerivation,
    MkDerivationNoCC,
    PythonFormat,
    SourceSignals,
    enumerate_builders,
)

FETCH = CargoVendor.FETCH_CARGO_VENDOR
IMPORT = CargoVendor.IMPORT_CARGO_LOCK


class TestEnumerateBuilders:
    def test_plain_tree(self):
        assert enumerate_builders(SourceSignals()) == [MkDerivation(), MkDerivationNoCC()]

    def test_go_first(self):
        assert enumerate_builders(SourceSignals(has_go=True)) == [
            BuildGoModule(),
            MkDerivation(),
            MkDerivationNoCC(),
        ]

    def test_cargo_with_registry_lock(self):
        signals = SourceSignals(has_cargo=True, has_cargo_lock=True)
        assert enumerate_builders(signals) == [
            BuildRustPackage(FETCH),
            MkDerivation(FETCH),
            BuildRustPackage(IMPORT),
            MkDerivation(IMPORT),
            MkDerivation(),
            MkDerivationNoCC(),
        ]

    def test_cargo_lock_with_git_sources_prefers_import(self):
        signals = SourceSignals(has_cargo=True, has_cargo_lock=True, cargo_lock_has_git=True)
        assert enumerate_builders(signals)[0] == BuildRustPackage(IMPORT)

    def test_missing_lock_prefers_import(self):
        assert enumerate_builders(SourceSignals(has_cargo=True))[0] == BuildRustPackage(IMPORT)

    def test_meson_puts_mkderivation_first(self):
        signals = SourceSignals(has_cargo=True, has_cargo_lock=True, has_meson=True)
        assert enumerate_builders(signals)[:2] == [MkDerivation(FETCH), BuildRustPackage(FETCH)]

    def test_python_with_rust_extension(self):
        signals = SourceSignals(has_cargo=True, has_cargo_lock=True, has_pyproject=True)
        builders = enumerate_builders(signals)
        assert builders[:2] == [
            BuildPythonPackage(application=True, format=PythonFormat.PYPROJECT, rust=FETCH),
            BuildPythonPackage(application=False, format=PythonFormat.PYPROJECT, rust=FETCH),
        ]
        assert BuildPythonPackage(application=True, format=PythonFormat.PYPROJECT) in builders

    def test_setuptools_only(self):
        assert SourceSignals(has_setuptools=True).python_formats() == [
            PythonFormat.SETUPTOOLS,
            PythonFormat.PYPROJECT,
        ]


class TestSignals:
    def test_from_dir(self, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package]\nname = \"x\"\n")
        (tmp_path / "Cargo.lock").write_text(
            'version = 3\n\n[[package]]\nname = "dep"\nversion = "0.1.0"\n'
            'source = "git+https://github.com/a/dep#0123abc"\n'
        )
        (tmp_path / "meson.build").write_text("")
        signals = SourceSignals.from_dir(tmp_path)

        assert signals.has_cargo and signals.has_cargo_lock and signals.cargo_lock_has_git
        assert signals.has_meson
        assert not signals.has_go and not signals.has_pyproject


def test_labels():
    assert BuildRustPackage(FETCH).label() == "buildRustPackage - cargoHash"
    assert BuildRustPackage(IMPORT).label() == "buildRustPackage - cargoLock"
    assert MkDerivation(IMPORT).label() == "stdenv.mkDerivation + importCargoLock"
    assert BuildPythonPackage(False, PythonFormat.SETUPTOOLS).label() == "buildPythonPackage - setuptools"
    assert MkDerivationNoCC().label() == "stdenvNoCC.mkDerivation"
