"""Tests for builder-independent manifest fragments."""

import io

from lang.python import PythonDependencies
from manifest import (
    UNFREE_LICENSE,
    find_changelog,
    license_value,
    nix_string,
    normalize_description,
    rank_licenses,
    write_imports_check,
    write_meta,
    write_python_dependencies,
)


def test_nix_string_escapes():
    assert nix_string('say "hi"') == '"say \\"hi\\""'
    assert nix_string("${x}") == '"\\${x}"'
    assert nix_string("a\\b\nc") == '"a\\\\b\\nc"'


def test_normalize_description():
    assert normalize_description("  a fast tool.  ") == "A fast tool"
    assert normalize_description("...") == ""
    assert normalize_description("") == ""


class TestLicenses:
    def test_rank_by_confidence_then_name(self):
        assert rank_licenses({"mit": 0.9, "asl20": 1.0, "bsd3": 0.9}) == ["asl20", "bsd3", "mit"]

    def test_values(self):
        assert license_value({}) == UNFREE_LICENSE
        assert license_value({"mit": 1.0}) == "licenses.mit;"
        assert license_value({"mit": 1.0, "asl20": 1.0}) == "with licenses; [ asl20 mit ];"


def test_find_changelog(tmp_path):
    (tmp_path / "README.md").write_text("")
    (tmp_path / "CHANGES").write_text("")
    (tmp_path / "CHANGELOG.md").write_text("")
    (tmp_path / "changelog.d").mkdir()
    assert find_changelog(tmp_path) == "CHANGELOG.md"


def test_find_changelog_none(tmp_path):
    (tmp_path / "README.md").write_text("")
    assert find_changelog(tmp_path) is None


def test_write_meta():
    out = io.StringIO()
    write_meta(
        out,
        description="a tool.",
        homepage="https://github.com/o/r",
        changelog="https://github.com/o/r/blob/${src.rev}/CHANGELOG.md",
        licenses={"mit": 1.0},
        maintainers=["alice", "bob"],
        main_program="r",
        platforms="platforms = platforms.all",
    )
    assert out.getvalue() == (
        "  meta = with lib; {\n"
        '    description = "A tool";\n'
        '    homepage = "https://github.com/o/r";\n'
        '    changelog = "https://github.com/o/r/blob/${src.rev}/CHANGELOG.md";\n'
        "    license = licenses.mit;\n"
        "    maintainers = with maintainers; [ alice bob ];\n"
        '    mainProgram = "r";\n'
        "    platforms = platforms.all;\n"
        "  };\n"
        "}\n"
    )


def test_write_meta_library_without_license():
    out = io.StringIO()
    write_meta(
        out,
        description="",
        homepage="https://pypi.org/project/x",
        changelog=None,
        licenses={},
        maintainers=[],
        main_program=None,
        platforms=None,
    )
    text = out.getvalue()
    assert "mainProgram" not in text
    assert "changelog" not in text
    assert "licenses.unfree; # FIXME: nixdraft did not find a license" in text
    assert "maintainers = with maintainers; [ ];" in text


class TestPythonFragments:
    def test_application_scope(self):
        deps = PythonDependencies(always={"requests", "click"}, optional={"cli": {"rich"}, "empty": set()})
        out = io.StringIO()
        write_python_dependencies(out, deps, application=True)
        assert out.getvalue() == (
            "  propagatedBuildInputs = with python3.pkgs; [\n"
            "    click\n"
            "    requests\n"
            "  ];\n\n"
            "  passthru.optional-dependencies = with python3.pkgs; {\n"
            "    cli = [\n"
            "      rich\n"
            "    ];\n"
            "  };\n\n"
        )

    def test_library_without_deps(self):
        out = io.StringIO()
        write_python_dependencies(out, PythonDependencies(), application=False)
        assert out.getvalue() == ""

    def test_imports_check(self):
        out = io.StringIO()
        write_imports_check(out, "foo_bar")
        assert out.getvalue() == '  pythonImportsCheck = [ "foo_bar" ];\n\n'
