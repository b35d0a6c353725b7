"""Frontends answering the questions asked while a manifest is generated."""
from __future__ import annotations

from frontend.base import Frontend, attr_name, by_name_path
from frontend.headless import Headless
from frontend.prompt import Prompt


def make_frontend(headless: bool) -> Frontend:
    return Headless() if headless else Prompt()


__all__ = ["Frontend", "Headless", "Prompt", "attr_name", "by_name_path", "make_frontend"]
