# heavythink/log.py
"""
Terminal logging for staged multi-agent runs.

One line per event, prefixed with the time since ``init()`` and a glyph:

    ━  stage banner      (Stage 2/3  Refining answers...)
    →  step in progress
    ✓  success
    ⚠  warning
    ✗  error             (printed even when quiet)
    ◆  session event
    ·  per-unit detail   (verbose only)

``log.verbose = True`` adds per-unit and detail lines.
``log.quiet = True`` drops everything except errors.
"""

import sys
import time

verbose: bool = False
quiet: bool = False

_color = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
_started: float = 0.0

_RESET = "\033[0m"
_STYLES = {
    "dim": "2",
    "green": "32",
    "yellow": "33",
    "red": "31",
    "magenta": "35",
    "blue!": "1;34",
    "green!": "1;32",
    "yellow!": "1;33",
    "red!": "1;31",
    "magenta!": "1;35",
    "white!": "1;37",
}

# level -> (glyph, glyph style, message style)
_LEVELS = {
    "step": ("→", "blue!", None),
    "ok": ("✓", "green!", "green"),
    "warn": ("⚠", "yellow!", "yellow"),
    "error": ("✗", "red!", "red"),
    "session": ("◆", "magenta!", None),
}

_RULE = "━" * 52


def _paint(style, text: str) -> str:
    if not _color or style is None:
        return text
    return f"\033[{_STYLES[style]}m{text}{_RESET}"


def _clock() -> str:
    if not _started:
        return ""
    secs = time.time() - _started
    if secs < 60:
        label = f"{secs:4.1f}s"
    else:
        label = "{}m{:02d}s".format(*divmod(int(secs), 60))
    return _paint("dim", f"[{label:>6}] ")


def _write(text: str):
    print(text, flush=True)


def _line(level: str, msg: str):
    if quiet and level != "error":
        return
    glyph, glyph_style, msg_style = _LEVELS[level]
    _write(f" {_clock()}{_paint(glyph_style, glyph)} {_paint(msg_style, msg)}")


def _banner(style: str, body: str):
    rule = _paint(style, _RULE)
    _write(f"\n{rule}\n{body}\n{rule}")


# ── Public API ───────────────────────────────────────────────

def init():
    """Restart the clock for a new run."""
    global _started
    _started = time.time()


def phase(num: int, total: int, title: str):
    if quiet:
        return
    _banner("blue!", _paint("white!", f"  Stage {num}/{total}") + _paint("blue!", f"  {title}"))


def done(msg: str = ""):
    """Run summary banner with total wall time."""
    if quiet or not _started:
        return
    mins, secs = divmod(int(time.time() - _started), 60)
    body = _paint("green!", "  ✓ Done") + _paint("dim", f"  ({mins}m {secs:02d}s)")
    if msg:
        body += f"  {msg}"
    _banner("green!", body)
    _write("")


def step(msg: str):
    _line("step", msg)


def ok(msg: str):
    _line("ok", msg)


def warn(msg: str):
    _line("warn", msg)


def error(msg: str):
    _line("error", msg)


def session(name: str, msg: str):
    _line("session", f"{_paint('magenta', name)}  {msg}")


def unit(stage: str, index: int, msg: str):
    """One agent's progress inside a stage."""
    if quiet or not verbose:
        return
    _write(f" {_clock()}    {_paint('dim', '·')} {_paint('dim', f'{stage}[{index}]')}  {_paint('dim', msg)}")


def detail(msg: str):
    if quiet or not verbose:
        return
    _write(" " * 12 + _paint("dim", msg))
