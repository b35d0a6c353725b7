"""Tests for build-input aggregation and rendering."""

import io

import pytest

from inputs import (
    AllInputs,
    Inputs,
    write_all_lambda_inputs,
    write_env,
    write_inputs,
    write_lambda_input,
)


class TestInputsInsert:
    """Every name lives in one bucket only."""

    def test_duplicate_insert_is_noop(self):
        inputs = Inputs()
        assert inputs.insert("openssl") is True
        assert inputs.insert("openssl") is False
        assert inputs.always == {"openssl"}

    def test_always_moves_name_out_of_platform_bucket(self):
        inputs = Inputs()
        inputs.insert("libiconv", "darwin")
        assert inputs.insert("libiconv") is True
        assert inputs.always == {"libiconv"}
        assert inputs.darwin == set()

    def test_platform_insert_after_always_is_noop(self):
        inputs = Inputs()
        inputs.insert("zlib")
        assert inputs.insert("zlib", "linux") is False
        assert inputs.linux == set()

    def test_first_platform_bucket_wins(self, caplog):
        inputs = Inputs()
        inputs.insert("foo", "darwin")
        assert inputs.insert("foo", "linux") is False
        assert inputs.platform_of("foo") == "darwin"
        assert "already present" in caplog.text

    def test_unknown_platform_rejected(self):
        with pytest.raises(ValueError):
            Inputs().insert("foo", "windows")

    def test_merge_keeps_dedup(self):
        left, right = Inputs(), Inputs()
        left.insert("a", "darwin")
        right.insert("a")
        right.insert("b", "linux")
        left.merge(right)
        assert left.always == {"a"}
        assert left.darwin == set()
        assert left.linux == {"b"}


class TestWriteInputs:
    """Rendering of nativeBuildInputs / buildInputs."""

    def test_empty_writes_nothing(self):
        out = io.StringIO()
        assert write_inputs(out, Inputs(), "buildInputs") is False
        assert out.getvalue() == ""

    def test_sorted_and_guarded(self):
        inputs = AllInputs()
        inputs.build("zlib", "openssl")
        inputs.framework("Security")
        out = io.StringIO()

        assert write_inputs(out, inputs.build_inputs, "buildInputs") is True
        assert out.getvalue() == (
            "  buildInputs = [\n"
            "    openssl\n"
            "    zlib\n"
            "  ] ++ lib.optionals stdenv.isDarwin [\n"
            "    darwin.apple_sdk.frameworks.Security\n"
            "  ];\n\n"
        )

    def test_only_platform_bucket(self):
        inputs = Inputs()
        inputs.insert("alsa-lib", "linux")
        out = io.StringIO()
        write_inputs(out, inputs, "buildInputs")
        assert out.getvalue() == (
            "  buildInputs = lib.optionals stdenv.isLinux [\n"
            "    alsa-lib\n"
            "  ];\n\n"
        )

    def test_gst_prefix(self):
        inputs = AllInputs()
        inputs.gst("gstreamer")
        assert inputs.build_inputs.always == {"gst_all_1.gstreamer"}


class TestLambdaInputs:
    """Function arguments of the generated expression."""

    def test_each_name_declared_once(self):
        out = io.StringIO()
        written = {"lib"}
        write_lambda_input(out, written, "lib")
        write_lambda_input(out, written, "stdenv")
        write_lambda_input(out, written, "stdenv")
        assert out.getvalue() == ", stdenv\n"

    def test_heads_of_dotted_names_and_stdenv_for_platform_inputs(self):
        inputs = AllInputs()
        inputs.native("pkg-config")
        inputs.build("openssl")
        inputs.framework("Security", "CoreFoundation")
        out = io.StringIO()

        flags = write_all_lambda_inputs(out, inputs, {"lib"})

        assert flags == (True, True)
        assert out.getvalue() == ", pkg-config\n, openssl\n, stdenv\n, darwin\n"

    def test_empty_inputs_report_false(self):
        out = io.StringIO()
        assert write_all_lambda_inputs(out, AllInputs(), set()) == (False, False)
        assert out.getvalue() == ""


def test_write_env_sorted_with_conditions():
    inputs = AllInputs()
    inputs.environ("B", '"1"', "stdenv.isDarwin")
    inputs.environ("A", "true")
    out = io.StringIO()

    write_env(out, inputs)

    assert out.getvalue() == (
        "  env = {\n"
        "    A = true;\n"
        '    B = lib.optionalString (stdenv.isDarwin) "1";\n'
        "  };\n\n"
    )


def test_write_env_empty():
    out = io.StringIO()
    write_env(out, AllInputs())
    assert out.getvalue() == ""
