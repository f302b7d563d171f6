# heavythink/validator.py
"""
Static syntax checks for code blocks in a final answer.

Only Python and JavaScript are checked. Both are parsed, never run, so a
snippet's prints and side effects never happen. Any other tag, or a checker
that is switched off, yields ``None``: "not checkable", not "valid".
"""

from __future__ import annotations

import ast
from typing import Callable, Optional

import esprima
from esprima.error_handler import Error as EsprimaError

from heavythink.errors import ValidationUnavailable

PYTHON_TAGS = ("python", "py")
JAVASCRIPT_TAGS = ("javascript", "js")


def check_python(code: str) -> Optional[str]:
    try:
        ast.parse(code, filename="<stdin>", mode="exec")
    except SyntaxError as e:
        where = f"line {e.lineno}" if e.lineno else "unknown line"
        return f"SyntaxError: {e.msg} ({where})"
    except ValueError as e:
        # source containing null bytes
        return f"SyntaxError: {e}"
    return None


def check_javascript(code: str) -> Optional[str]:
    try:
        esprima.parseScript(code)
    except EsprimaError as e:
        return f"SyntaxError: {e}"
    return None


class SyntaxValidator:
    """
    ``check(language, code)`` returns a diagnostic string or ``None``.

    Parameters
    ----------
    python : bool
        Enable the Python checker.
    javascript : bool
        Enable the JavaScript checker.
    """

    def __init__(self, python: bool = True, javascript: bool = True):
        self._checkers: dict[str, Callable[[str], Optional[str]]] = {}
        self._disabled: set[str] = set()
        for tag in PYTHON_TAGS:
            self._checkers[tag] = check_python
            if not python:
                self._disabled.add(tag)
        for tag in JAVASCRIPT_TAGS:
            self._checkers[tag] = check_javascript
            if not javascript:
                self._disabled.add(tag)

    def checkable(self, language: str) -> bool:
        tag = language.lower()
        return tag in self._checkers and tag not in self._disabled

    def _checker_for(self, language: str) -> Callable[[str], Optional[str]]:
        tag = language.lower()
        if tag not in self._checkers:
            raise ValidationUnavailable(f"No checker for language '{language}'")
        if tag in self._disabled:
            raise ValidationUnavailable(f"Checker for '{language}' is disabled")
        return self._checkers[tag]

    def check(self, language: str, code: str) -> Optional[str]:
        try:
            checker = self._checker_for(language)
        except ValidationUnavailable:
            return None
        return checker(code)
