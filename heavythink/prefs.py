# heavythink/prefs.py
"""
The one persisted setting: the REPL's light/dark theme.
"""

from __future__ import annotations

import json
from pathlib import Path

THEMES = ("dark", "light")


class Preferences:
    def __init__(self, path: str = ".heavy_prefs.json"):
        self._path = Path(path).resolve()
        self.theme = "dark"
        self._load()

    def _load(self):
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError):
            return
        if data.get("theme") in THEMES:
            self.theme = data["theme"]

    def save(self):
        self._path.write_text(json.dumps({"theme": self.theme}))

    def toggle_theme(self) -> str:
        self.theme = "light" if self.theme == "dark" else "dark"
        self.save()
        return self.theme

    @property
    def accent(self) -> str:
        return "blue" if self.theme == "dark" else "magenta"
