"""Tests for Python project metadata parsing."""

from inputs import AllInputs
from lang.python import (
    Pyproject,
    get_python_dependencies,
    load_python_dependencies,
    parse_requirements_txt,
    python_import_name,
)

PEP621 = """\
[build-system]
requires = ["setuptools>=61", "wheel"]

[project]
name = "Foo.Bar"
license = "MIT"
dependencies = ["Requests>=2", "click"]

[project.optional-dependencies]
test = ["pytest>=7"]
"""

POETRY = """\
[build-system]
requires = ["poetry-core"]

[tool.poetry]
name = "poet"
license = "Apache-2.0"

[tool.poetry.dependencies]
python = "^3.8"
requests = "^2"
rich = { version = "*", optional = true }

[tool.poetry.extras]
cli = ["rich"]
"""


def _pyproject(tmp_path, text):
    path = tmp_path / "pyproject.toml"
    path.write_text(text)
    return Pyproject.from_path(path)


class TestRequirementStrings:
    def test_extras_from_markers(self):
        deps = get_python_dependencies([
            "Requests>=2",
            "pytest; extra == 'test'",
            "black; extra == 'dev' or extra == 'lint'",
            "not valid!!",
        ])
        assert deps.always == {"requests"}
        assert deps.optional == {"test": {"pytest"}, "dev": {"black"}, "lint": {"black"}}

    def test_non_extra_markers_are_runtime(self):
        deps = get_python_dependencies(["tomli; python_version < '3.11'"])
        assert deps.always == {"tomli"}

    def test_extra_on_either_side(self):
        deps = get_python_dependencies(['sphinx; "docs" == extra', 'mypy; python_version >= "3.8" and extra == "typing"'])
        assert deps.optional == {"docs": {"sphinx"}, "typing": {"mypy"}}


class TestPyproject:
    def test_pep621(self, tmp_path):
        pyproject = _pyproject(tmp_path, PEP621)
        deps = pyproject.get_dependencies()

        assert pyproject.get_name() == "Foo.Bar"
        assert pyproject.get_license() == "MIT"
        assert deps.always == {"requests", "click"}
        assert deps.optional == {"test": {"pytest"}}

    def test_poetry(self, tmp_path):
        pyproject = _pyproject(tmp_path, POETRY)
        deps = pyproject.get_dependencies()

        assert pyproject.get_license() == "Apache-2.0"
        assert deps.always == {"requests"}
        assert deps.optional == {"cli": {"rich"}}

    def test_build_dependencies_library(self, tmp_path):
        inputs = AllInputs()
        _pyproject(tmp_path, PEP621).load_build_dependencies(inputs, application=False)
        assert inputs.native_build_inputs.always == {"setuptools", "wheel"}

    def test_build_dependencies_application(self, tmp_path):
        inputs = AllInputs()
        _pyproject(tmp_path, PEP621).load_build_dependencies(inputs, application=True)
        assert inputs.native_build_inputs.always == {"python3.pkgs.setuptools", "python3.pkgs.wheel"}

    def test_maturin_hook(self, tmp_path):
        inputs = AllInputs()
        _pyproject(tmp_path, '[build-system]\nrequires = ["maturin>=1,<2"]\n').load_build_dependencies(
            inputs, application=True
        )
        assert inputs.native_build_inputs.always == {"rustPlatform.maturinBuildHook"}

    def test_missing_file(self, tmp_path):
        assert Pyproject.from_path(tmp_path / "pyproject.toml") is None

    def test_no_declared_dependencies(self, tmp_path):
        assert _pyproject(tmp_path, '[project]\nname = "x"\n').get_dependencies() is None


class TestRequirementsTxt:
    def test_parse(self, tmp_path):
        (tmp_path / "requirements.txt").write_text("requests==2.0\n# pinned\nClick>=8\n")
        deps = parse_requirements_txt(tmp_path)
        assert deps.always == {"requests", "click"}

    def test_bad_line_skipped_others_kept(self, tmp_path, caplog):
        (tmp_path / "requirements.txt").write_text("requests>=2\nfoo bar baz ===\nclick\n")
        deps = parse_requirements_txt(tmp_path)
        assert deps.always == {"requests", "click"}
        assert "foo bar baz ===" in caplog.text

    def test_options_continuations_and_markers(self, tmp_path):
        (tmp_path / "requirements.txt").write_text(
            "--index-url https://example.com/simple\n"
            "-r other.txt\n"
            "rich>=13 \\\n"
            "    ; extra == 'cli'  # pretty output\n"
            "attrs\n"
        )
        deps = parse_requirements_txt(tmp_path)
        assert deps.always == {"attrs"}
        assert deps.optional == {"cli": {"rich"}}

    def test_missing(self, tmp_path):
        assert parse_requirements_txt(tmp_path) is None

    def test_fallback_when_pyproject_declares_nothing(self, tmp_path):
        (tmp_path / "requirements.txt").write_text("attrs\n")
        pyproject = _pyproject(tmp_path, '[project]\nname = "x"\n')
        assert load_python_dependencies(tmp_path, pyproject).always == {"attrs"}


def test_import_name():
    assert python_import_name("Foo-Bar", None) == "foo_bar"
