"""Interactive answers read from the terminal."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from builder import Builder
from common.errors import UserAbort
from common.naming import kebab_case
from frontend.base import Frontend, by_name_path
from versioning.models import Commit, Head, Latest, Pypi, Revisions, Tag, Version


def describe(version: Version) -> str:
    """Annotation shown next to a revision in the menu."""
    if isinstance(version, Latest):
        return "(latest release)"
    if isinstance(version, Tag):
        return "(tag)"
    if isinstance(version, Pypi):
        return f"({version.format.value})"
    if isinstance(version, Head):
        return f"({version.date} - HEAD) {version.msg}"
    if isinstance(version, Commit):
        return f"({version.date}) {version.msg}"
    return ""


class Prompt(Frontend):
    """Asks on stderr and reads answers with ``input()``."""

    def __init__(self, read: Callable[[str], str] = input, write=None):
        self._read = read
        self._out = write or sys.stderr

    def _ask(self, message: str, default: Optional[str] = None, allow_empty: bool = False) -> str:
        suffix = f" [{default}]" if default else ""
        while True:
            try:
                answer = self._read(f"{message}{suffix}\n❯ ").strip()
            except EOFError as exc:
                raise UserAbort("input closed") from exc
            except KeyboardInterrupt as exc:
                raise UserAbort("interrupted") from exc
            if answer:
                return answer
            if default:
                return default
            if allow_empty:
                return ""

    def _yes_no(self, message: str) -> bool:
        answer = self._ask(f"{message}? (Y/n)", allow_empty=True)
        return not answer.lower().startswith("n")

    def _menu(self, lines: List[str]) -> None:
        for line in lines:
            print(f"  {line}", file=self._out)

    def url(self) -> str:
        return self._ask("Enter url")

    def rev(self, revisions: Optional[Revisions]) -> Tuple[str, Optional[Version]]:
        if revisions is None:
            return self._ask("Enter tag or revision"), None
        self._menu([c.display for c in revisions.completions])
        rev = self._ask(
            f"Enter tag or revision (defaults to {revisions.latest})",
            default=revisions.latest or None,
        )
        version = revisions.versions.get(rev)
        if version is not None:
            print(f"  {rev} {describe(version)}", file=self._out)
        return rev, version

    def fetch_submodules(self) -> bool:
        return self._yes_no("Fetch submodules")

    def version(self, version: str) -> str:
        return self._ask("Enter version", default=version or None)

    def pname(self, pname: Optional[str]) -> str:
        return self._ask("Enter pname", default=kebab_case(pname) if pname else None)

    def builder(self, builders: List[Builder]) -> Builder:
        self._menu([f"{i} - {b.label()}" for i, b in enumerate(builders)])
        answer = self._ask("How should this package be built?", allow_empty=True)
        if answer.isdigit() and int(answer) < len(builders):
            return builders[int(answer)]
        return builders[0]

    def output(self, pname: str) -> str:
        answer = self._ask(
            "Enter output path (leave as empty for the current directory)",
            default=by_name_path(pname),
            allow_empty=True,
        )
        return answer or "."

    def overwrite(self, path: Path) -> bool:
        return self._yes_no(f"Overwrite {path}")
