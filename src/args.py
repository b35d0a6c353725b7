"""Argument parsing functionality for nixdraft."""

import argparse
from constants import Constants

def build_parser():
    """Builds the argument parser for the program."""
    parser = argparse.ArgumentParser(
        prog=Constants.PROG_NAME,
        description=(
            "Generate Nix packages from URLs with hash prefetching, "
            "dependency inference and license detection"
        ),
        add_help=True,
    )

    parser.add_argument("OUTPUT",
                        help="Path to output the generated file to (prompted for when omitted)",
                        nargs="?",
                        type=str)
    parser.add_argument("-u", "--url",
                        dest="URL",
                        help="Specify the URL",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("-n", "--nixpkgs",
                        dest="NIXPKGS",
                        help="Path to nixpkgs (in nix syntax, default: <nixpkgs>)",
                        action="store",
                        type=str)
    parser.add_argument("--headless",
                        dest="HEADLESS",
                        help="Never prompt; take the default for every question",
                        action="store_true")

    overwrite_group = parser.add_mutually_exclusive_group()
    overwrite_group.add_argument("--overwrite",
                        dest="OVERWRITE",
                        help="Overwrite existing output files without asking",
                        action="store_const",
                        const=True,
                        default=None)
    overwrite_group.add_argument("--no-overwrite",
                        dest="OVERWRITE",
                        help="Keep existing output files without asking",
                        action="store_const",
                        const=False)

    parser.add_argument("--commit",
                        dest="COMMIT",
                        help="Commit the generated file with git",
                        action="store_true")
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
