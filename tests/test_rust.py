"""Tests for Cargo support."""

import asyncio
import io
import json
from unittest.mock import AsyncMock, patch

import pytest

from common.errors import CommandError, NixDraftError
from hashing import FAKE_HASH
from inputs import AllInputs
from lang.mapping import MappingTable
from lang.rust import (
    CargoLockFile,
    CargoPackage,
    cargo_deps_hash,
    load_cargo_lock,
    parse_cargo_lock,
    parse_cargo_metadata,
    resolve_rust_packages,
    write_cargo_lock,
)

LOCK = """\
version = 3

[[package]]
name = "demo"
version = "0.1.0"

[[package]]
name = "libz-sys"
version = "1.1.12"
source = "registry+https://github.com/rust-lang/crates.io-index"

[[package]]
name = "forked"
version = "0.2.0"
source = "git+https://github.com/a/forked?rev=abc123#abc123def456"
"""

METADATA = {
    "packages": [
        {"id": "demo 0.1.0", "name": "demo", "version": "0.1.0", "source": None},
        {"id": "libz-sys 1.1.12", "name": "libz-sys", "version": "1.1.12", "source": "registry+x"},
        {"id": "unused 1.0.0", "name": "unused", "version": "1.0.0", "source": "registry+x"},
    ],
    "resolve": {
        "nodes": [
            {"id": "demo 0.1.0", "features": []},
            {"id": "libz-sys 1.1.12", "features": ["default", "libc"]},
        ]
    },
}


@pytest.fixture(scope="module")
def table():
    return MappingTable.load("rust")


class TestParsing:
    def test_lock(self):
        packages = parse_cargo_lock(LOCK)
        assert [p.name for p in packages] == ["demo", "libz-sys", "forked"]
        assert packages[0].source is None

    def test_invalid_lock(self):
        assert parse_cargo_lock("[[package]\n") is None

    def test_git_source(self):
        pkg = CargoPackage("forked", "0.2.0", "git+https://github.com/a/forked?rev=abc123#abc123def456")
        assert pkg.git_source() == ("https://github.com/a/forked", "abc123def456")
        assert CargoPackage("x", "1", "registry+https://x").git_source() is None
        assert CargoPackage("x", "1").git_source() is None

    def test_metadata_keeps_resolved_packages_with_features(self):
        packages = parse_cargo_metadata(json.dumps(METADATA))
        assert packages == [
            CargoPackage("demo", "0.1.0", None, ()),
            CargoPackage("libz-sys", "1.1.12", "registry+x", ("default", "libc")),
        ]


class TestWriteCargoLock:
    @patch("lang.rust.get_stdout", new_callable=AsyncMock, return_value="sha256-git\n")
    def test_output_hashes(self, mock_stdout):
        out = io.StringIO()
        asyncio.run(write_cargo_lock(out, CargoLockFile(missing=False, packages=parse_cargo_lock(LOCK))))

        assert out.getvalue() == (
            "{\n"
            "    lockFile = ./Cargo.lock;\n"
            "    outputHashes = {\n"
            '      "forked-0.2.0" = "sha256-git";\n'
            "    };\n"
            "  };\n\n"
        )
        mock_stdout.assert_awaited_once_with(
            ["nurl", "https://github.com/a/forked", "abc123def456", "-Hf", "fetchgit"]
        )

    def test_missing_lock_symlinked(self):
        out = io.StringIO()
        asyncio.run(write_cargo_lock(out, CargoLockFile(missing=True, packages=[])))
        assert out.getvalue() == (
            "{\n"
            "    lockFile = ./Cargo.lock;\n"
            "  };\n\n"
            "  postPatch = ''\n"
            "    ln -s ${./Cargo.lock} Cargo.lock\n"
            "  '';\n\n"
        )

    @patch("lang.rust.get_stdout", new_callable=AsyncMock, side_effect=CommandError(["nurl"], 1, stderr="nope"))
    def test_failed_git_hash_is_skipped(self, _mock_stdout):
        out = io.StringIO()
        asyncio.run(write_cargo_lock(out, CargoLockFile(missing=False, packages=parse_cargo_lock(LOCK))))
        assert "outputHashes" not in out.getvalue()


class TestResolution:
    @patch("lang.rust.cargo_resolve", new_callable=AsyncMock, side_effect=CommandError(["cargo"], 101))
    def test_falls_back_to_lock(self, _mock_resolve, tmp_path):
        (tmp_path / "Cargo.lock").write_text(LOCK)
        packages = asyncio.run(resolve_rust_packages(tmp_path))
        assert [p.name for p in packages] == ["demo", "libz-sys", "forked"]

    @patch("lang.rust.cargo_resolve", new_callable=AsyncMock, side_effect=CommandError(["cargo"], 127))
    def test_nothing_without_cargo_or_lock(self, _mock_resolve, tmp_path):
        assert asyncio.run(resolve_rust_packages(tmp_path)) == []


class TestLoadCargoLock:
    @patch("lang.rust.cargo_resolve", new_callable=AsyncMock)
    def test_copies_source_lock_and_maps(self, mock_resolve, table, tmp_path):
        src, out_dir = tmp_path / "src", tmp_path / "out"
        src.mkdir()
        out_dir.mkdir()
        (src / "Cargo.lock").write_text(LOCK)
        mock_resolve.return_value = (parse_cargo_metadata(json.dumps(METADATA)), LOCK)
        inputs = AllInputs()

        lock = asyncio.run(load_cargo_lock(table, inputs, out_dir, src, keep_existing=False))

        assert lock.missing is False
        assert (out_dir / "Cargo.lock").read_text() == LOCK
        assert inputs.build_inputs.always == {"zlib"}

    @patch("lang.rust.cargo_resolve", new_callable=AsyncMock)
    def test_generates_missing_lock(self, mock_resolve, table, tmp_path):
        src, out_dir = tmp_path / "src", tmp_path / "out"
        src.mkdir()
        out_dir.mkdir()
        mock_resolve.return_value = (parse_cargo_metadata(json.dumps(METADATA)), LOCK)
        inputs = AllInputs()

        lock = asyncio.run(load_cargo_lock(table, inputs, out_dir, src, keep_existing=False))

        assert lock.missing is True
        assert (out_dir / "Cargo.lock").read_text() == LOCK
        assert inputs.build_inputs.always == {"zlib"}
        mock_resolve.assert_awaited_once()

    @patch("lang.rust.cargo_resolve", new_callable=AsyncMock, side_effect=CommandError(["cargo"], 101))
    def test_generation_failure_is_fatal(self, _mock_resolve, table, tmp_path):
        with pytest.raises(NixDraftError, match="Failed to generate lock file"):
            asyncio.run(load_cargo_lock(table, AllInputs(), tmp_path, tmp_path, keep_existing=False))

    @patch("lang.rust.cargo_resolve", new_callable=AsyncMock, side_effect=CommandError(["cargo"], 127))
    def test_keeps_existing_lock(self, _mock_resolve, table, tmp_path):
        src, out_dir = tmp_path / "src", tmp_path / "out"
        src.mkdir()
        out_dir.mkdir()
        (src / "Cargo.lock").write_text("version = 3\n")
        (out_dir / "Cargo.lock").write_text(LOCK)

        lock = asyncio.run(load_cargo_lock(table, AllInputs(), out_dir, src, keep_existing=True))

        assert (out_dir / "Cargo.lock").read_text() == LOCK
        assert [p.name for p in lock.packages] == ["demo", "libz-sys", "forked"]


class TestCargoDepsHash:
    @patch("lang.rust.cargo_resolve", new_callable=AsyncMock, side_effect=CommandError(["cargo"], 127))
    def test_placeholder_without_lock(self, _mock_resolve, table, tmp_path):
        found = asyncio.run(cargo_deps_hash(table, AllInputs(), "p", "1", "/nix/store/s", tmp_path, "<nixpkgs>"))
        assert found == FAKE_HASH

    @patch("lang.rust.fod_hash_or_fake", new_callable=AsyncMock, return_value="sha256-vendor")
    @patch("lang.rust.cargo_resolve", new_callable=AsyncMock)
    def test_hash_and_mapping_merged(self, mock_resolve, mock_hash, table, tmp_path):
        (tmp_path / "Cargo.lock").write_text(LOCK)
        mock_resolve.return_value = (parse_cargo_metadata(json.dumps(METADATA)), LOCK)
        inputs = AllInputs()
        inputs.build("openssl")

        found = asyncio.run(cargo_deps_hash(table, inputs, "p", "1", "/nix/store/s", tmp_path, "<nixpkgs>"))

        assert found == "sha256-vendor"
        assert inputs.build_inputs.always == {"openssl", "zlib"}
        assert "fetchCargoVendor" in mock_hash.call_args[0][0]
