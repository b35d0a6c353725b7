"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    COMMAND_ERROR = 2
    USER_ABORT = 3


class FetcherKind(Enum):
    """Source fetchers with a registry behind them.

    Args:
        Enum (string): Nix fetcher function names understood by nurl.
    """

    CRATE = "fetchCrate"
    CODEBERG = "fetchFromCodeberg"
    FORGEJO = "fetchFromForgejo"
    GITEA = "fetchFromGitea"
    GITHUB = "fetchFromGitHub"
    GITLAB = "fetchFromGitLab"
    PYPI = "fetchPypi"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PROG_NAME = "nixdraft"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "NIXDRAFT_LOG_LEVEL"
    CONFIG_DIR_NAME = "nixdraft"
    CONFIG_FILE_NAME = "config.yaml"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    COMMAND_TIMEOUT = 10  # Timeout in seconds for access token commands
    USER_AGENT = "Mozilla/5.0"

    # Registry API constants
    GITHUB_BASE = "github.com"
    GITLAB_DOMAIN = "gitlab.com"
    CODEBERG_DOMAIN = "codeberg.org"
    CRATES_IO_API_BASE = "https://crates.io/api/v1/crates"
    PYPI_API_BASE = "https://pypi.org/pypi"
    REVISION_LIST_LIMIT = 12
    HTTP_RETRY_MAX = 3

    # External commands
    NIX = "nix"
    NURL = "nurl"
    CARGO = "cargo"
    GIT = "git"
    DEFAULT_NIXPKGS = "<nixpkgs>"
    FAKE_HASH = "sha256-AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA="

    # Detection thresholds
    LICENSE_CONFIDENCE = 0.8
    LICENSE_FILE_PREFIXES = ("license", "licence", "copying")
    CHANGELOG_FILE_PREFIXES = ("changelog", "changes", "releases")
    CHANGELOG_FILE_NAMES = ("news",)
    GORELEASER_FILES = (
        ".goreleaser.yml",
        ".goreleaser.yaml",
        "goreleaser.yml",
        "goreleaser.yaml",
    )
