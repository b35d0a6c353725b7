"""Tests for command line parsing."""

import pytest

from args import parse_args


def test_defaults():
    args = parse_args([])
    assert args.OUTPUT is None
    assert args.URL is None
    assert args.HEADLESS is False
    assert args.OVERWRITE is None
    assert args.COMMIT is False
    assert args.LOG_LEVEL == "INFO"


def test_all_options():
    args = parse_args([
        "pkgs/hello/",
        "-u", "https://github.com/o/hello",
        "-c", "cfg.yaml",
        "-n", "./nixpkgs",
        "--headless",
        "--no-overwrite",
        "--commit",
        "--loglevel", "DEBUG",
        "--logfile", "run.log",
    ])
    assert args.OUTPUT == "pkgs/hello/"
    assert args.URL == "https://github.com/o/hello"
    assert args.CONFIG == "cfg.yaml"
    assert args.NIXPKGS == "./nixpkgs"
    assert args.HEADLESS is True
    assert args.OVERWRITE is False
    assert args.COMMIT is True
    assert args.LOG_LEVEL == "DEBUG"
    assert args.LOG_FILE == "run.log"


def test_overwrite_flags_conflict():
    with pytest.raises(SystemExit):
        parse_args(["--overwrite", "--no-overwrite"])


def test_invalid_loglevel():
    with pytest.raises(SystemExit):
        parse_args(["--loglevel", "LOUD"])
