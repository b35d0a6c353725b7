"""User configuration: maintainers, nixpkgs location and registry access tokens.

The file is YAML and optional. ``--config`` takes precedence over
``$XDG_CONFIG_HOME/nixdraft/config.yaml``; a missing default file yields the
defaults, while an explicit path that cannot be read is an error.
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from common.errors import ConfigError
from constants import Constants

logger = logging.getLogger(__name__)


def _run_token_command(command: List[str]) -> Optional[str]:
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=Constants.COMMAND_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning("Failed to execute token command %s: %s", command[0], exc)
        return None
    if result.returncode != 0:
        logger.warning("Token command %s exited with status %d", command[0], result.returncode)
        return None
    return result.stdout.strip() or None


def _read_token_file(path: str) -> Optional[str]:
    try:
        with open(os.path.expanduser(path), "r", encoding="utf-8") as fh:
            return fh.read().strip() or None
    except OSError as exc:
        logger.warning("Failed to read token file %s: %s", path, exc)
        return None


@dataclass(frozen=True)
class AccessToken:
    """One token source: a literal, a command printing the token, or a file."""

    text: Optional[str] = None
    command: Optional[List[str]] = None
    file: Optional[str] = None

    @classmethod
    def from_value(cls, host: str, value: Any) -> "AccessToken":
        if isinstance(value, str):
            return cls(text=value)
        if isinstance(value, dict):
            command = value.get("command")
            if isinstance(command, list) and command and all(isinstance(c, str) for c in command):
                return cls(command=list(command))
            if isinstance(value.get("file"), str):
                return cls(file=value["file"])
        raise ConfigError(f"access-tokens.{host}: expected a string, {{command: [...]}} or {{file: path}}")

    def resolve(self) -> Optional[str]:
        """Return the token, or None when its source could not produce one."""
        if self.text is not None:
            return self.text.strip() or None
        if self.command is not None:
            return _run_token_command(self.command)
        if self.file is not None:
            return _read_token_file(self.file)
        return None


@dataclass
class AccessTokens:
    """Tokens keyed by registry host."""

    tokens: Dict[str, AccessToken] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "AccessTokens":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("access-tokens must be a mapping of host to token")
        return cls({str(host): AccessToken.from_value(str(host), value) for host, value in data.items()})

    async def headers_for(self, host: str) -> Dict[str, str]:
        """``Authorization`` header for ``host``; empty when no usable token exists."""
        token = self.tokens.get(host)
        if token is None:
            return {}
        value = await asyncio.to_thread(token.resolve)
        if not value:
            return {}
        return {"Authorization": f"Bearer {value}"}


@dataclass
class Config:
    maintainers: List[str] = field(default_factory=list)
    nixpkgs: Optional[str] = None
    commit: bool = False
    access_tokens: AccessTokens = field(default_factory=AccessTokens)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        maintainers = data.get("maintainers") or []
        if not isinstance(maintainers, list) or not all(isinstance(m, str) for m in maintainers):
            raise ConfigError("maintainers must be a list of strings")
        nixpkgs = data.get("nixpkgs")
        if nixpkgs is not None and not isinstance(nixpkgs, str):
            raise ConfigError("nixpkgs must be a string")
        return cls(
            maintainers=list(maintainers),
            nixpkgs=nixpkgs,
            commit=bool(data.get("commit", False)),
            access_tokens=AccessTokens.from_dict(data.get("access-tokens")),
        )


def default_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return Path(base) / Constants.CONFIG_DIR_NAME / Constants.CONFIG_FILE_NAME


def load_config(path: Optional[str] = None) -> Config:
    """Load the configuration file.

    Args:
        path: Explicit config path from the command line.

    Returns:
        Config: Parsed configuration, defaults when no file exists.

    Raises:
        ConfigError: The file cannot be read or has an invalid shape.
    """
    config_path = Path(path) if path else default_config_path()
    if not path and not config_path.is_file():
        logger.debug("No config file at %s", config_path)
        return Config()

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config file {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")
    return Config.from_dict(data)
