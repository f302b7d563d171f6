"""Shared fixtures: a scripted, thread-safe stand-in for the completion client."""

import itertools
import re
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import pytest

from heavythink import context, log
from heavythink.errors import UpstreamError


@pytest.fixture(autouse=True)
def quiet_log():
    """Keep stage banners out of test output."""
    log.quiet = True
    yield
    log.quiet = False


@dataclass(frozen=True)
class Call:
    history: tuple
    parts: tuple
    system: str

    @property
    def context(self) -> str:
        last = self.parts[-1]
        text = last.text or ""
        return text[len(context.INTERNAL_CONTEXT_HEADER):] if text.startswith(context.INTERNAL_CONTEXT_HEADER) else text


def _between(text: str, start: str, end: Optional[str] = None) -> str:
    pattern = re.escape(start) + (r"(.*?)" + re.escape(end) if end else r"(.*)$")
    match = re.search(pattern, text, re.DOTALL)
    assert match, f"{start!r} not found in {text[:200]!r}"
    return match.group(1)


class FakeClient:
    """
    Answers each stage deterministically from its own prompt:

      initial     initial-<n>           (n = arrival order)
      elaborate   elaborated(<own>)
      refine      refined(<own>)
      critique    critique of <target>
      revise      revised(<own>)
      synthesize  ``final_text``, or merged(...) for group merges
      review      the reviewed text unchanged
      correction  ``correction_text``
    """

    def __init__(self, final_text: str = "Final answer.", correction_text: str = "```python\nfixed()\n```"):
        self.final_text = final_text
        self.correction_text = correction_text
        self.fail_when: Optional[Callable[[Call, int], bool]] = None
        self.fail_with: Callable[[], Exception] = lambda: UpstreamError("quota exceeded", provider="fake")
        self.calls: list[Call] = []
        self._lock = threading.Lock()
        self._initial_ids = itertools.count()

    def complete(self, history, parts, system):
        call = Call(tuple(history), tuple(parts), system)
        with self._lock:
            self.calls.append(call)
            same_kind = sum(1 for c in self.calls if c.system == system)
        if self.fail_when is not None and self.fail_when(call, same_kind):
            raise self.fail_with()
        return self._respond(call)

    def _respond(self, call: Call) -> str:
        ctx = call.context
        system = call.system
        if system == context.INITIAL_SYSTEM_INSTRUCTION:
            with self._lock:
                return f"initial-{next(self._initial_ids)}"
        if system == context.ELABORATION_SYSTEM_INSTRUCTION:
            own = _between(ctx, "---INITIAL---\n", "\n\nExpand")
            return f"elaborated({own})"
        if system == context.REFINEMENT_SYSTEM_INSTRUCTION:
            own = _between(ctx, "The response I'm working with is: \"", "\". The other")
            return f"refined({own})"
        if system == context.CRITIQUE_SYSTEM_INSTRUCTION:
            target = _between(ctx, "---RESPONSE---\n")
            return f"critique of {target}"
        if system == context.REVISION_SYSTEM_INSTRUCTION:
            own = _between(ctx, "---ORIGINAL---\n", "\n\nHere is a critique")
            return f"revised({own})"
        if system == context.SYNTHESIZER_SYSTEM_INSTRUCTION:
            if ctx.startswith("Here are 3 refined"):
                return "merged(" + ", ".join(re.findall(r'Refined \d+:\n"(.*?)"', ctx)) + ")"
            return self.final_text
        if system == context.FINAL_REVIEW_SYSTEM_INSTRUCTION:
            return _between(ctx, "---RESPONSE TO REVIEW---\n")
        if system.startswith("You are a code correction AI"):
            return self.correction_text
        raise AssertionError(f"unexpected system instruction: {system[:60]}")

    def calls_for(self, system: str) -> list[Call]:
        return [c for c in self.calls if c.system == system]

    @property
    def correction_calls(self) -> list[Call]:
        return [c for c in self.calls if c.system.startswith("You are a code correction AI")]


class StubValidator:
    """Returns a fixed diagnostic for the given tags, None otherwise."""

    def __init__(self, diagnostic: str = "SyntaxError: invalid syntax (line 1)", tags=("python",)):
        self.diagnostic = diagnostic
        self.tags = tags
        self.checked: list[tuple[str, str]] = []

    def check(self, language, code):
        self.checked.append((language, code))
        return self.diagnostic if language in self.tags else None


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def make_client():
    return FakeClient


@pytest.fixture
def make_validator():
    return StubValidator
