"""Tests for configuration loading and access tokens."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from cli_config import AccessToken, AccessTokens, Config, default_config_path, load_config
from common.errors import ConfigError

CONFIG = """\
maintainers:
  - alice
nixpkgs: "<nixpkgs>"
commit: true
access-tokens:
  github.com: ghp_literal
  gitlab.com:
    command: [pass, show, gitlab]
  codeberg.org:
    file: ~/.codeberg-token
"""


class TestLoadConfig:
    def test_missing_default_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert default_config_path() == tmp_path / "nixdraft" / "config.yaml"
        assert load_config() == Config()

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_full_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG)
        config = load_config(str(path))

        assert config.maintainers == ["alice"]
        assert config.nixpkgs == "<nixpkgs>"
        assert config.commit is True
        assert config.access_tokens.tokens == {
            "github.com": AccessToken(text="ghp_literal"),
            "gitlab.com": AccessToken(command=["pass", "show", "gitlab"]),
            "codeberg.org": AccessToken(file="~/.codeberg-token"),
        }

    def test_default_location(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        (tmp_path / "nixdraft").mkdir()
        (tmp_path / "nixdraft" / "config.yaml").write_text("maintainers: [bob]\n")
        assert load_config().maintainers == ["bob"]

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("maintainers: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_bad_maintainers(self):
        with pytest.raises(ConfigError):
            Config.from_dict({"maintainers": "alice"})

    def test_bad_token_shape(self):
        with pytest.raises(ConfigError):
            AccessToken.from_value("github.com", {"command": "not-a-list"})


class TestAccessTokens:
    def test_literal_header(self):
        tokens = AccessTokens({"github.com": AccessToken(text=" abc \n")})
        assert asyncio.run(tokens.headers_for("github.com")) == {"Authorization": "Bearer abc"}

    def test_unknown_host(self):
        assert asyncio.run(AccessTokens().headers_for("github.com")) == {}

    @patch("cli_config.subprocess.run")
    def test_command_token(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="tok\n")
        assert AccessToken(command=["pass", "show", "x"]).resolve() == "tok"
        assert mock_run.call_args.kwargs["timeout"] == 10

    @patch("cli_config.subprocess.run")
    def test_failing_command_is_skipped(self, mock_run, caplog):
        mock_run.return_value = MagicMock(returncode=1, stdout="")
        tokens = AccessTokens({"gitlab.com": AccessToken(command=["false"])})
        assert asyncio.run(tokens.headers_for("gitlab.com")) == {}
        assert "exited with status 1" in caplog.text

    @patch("cli_config.subprocess.run", side_effect=FileNotFoundError("pass"))
    def test_missing_command(self, _mock_run):
        assert AccessToken(command=["pass"]).resolve() is None

    def test_file_token(self, tmp_path):
        path = tmp_path / "token"
        path.write_text("from-file\n")
        assert AccessToken(file=str(path)).resolve() == "from-file"
        assert AccessToken(file=str(tmp_path / "missing")).resolve() is None
