# heavythink/progress.py
"""
Per-stage progress for one orchestration run.

Each stage slot is either a list of booleans (one per unit) or a single
boolean. Slots start false when a run is reset and only ever flip to true.
Unit completions arrive from worker threads, so every mark is a keyed
update of one slot under a lock.
"""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional, Union

SlotValue = Union[bool, tuple[bool, ...]]
ProgressListener = Callable[[str, Optional[int], dict[str, SlotValue]], None]

LIST_SLOTS = ("initial", "elaborating", "refining", "critiquing", "revising", "synthesizing")
FLAG_SLOTS = ("final_synthesizing", "reviewing", "verifying")


class ProgressTracker:
    """
    Thread-safe progress state.

    ``listener(stage, index, snapshot)`` is called after every mark that
    changes state; ``index`` is ``None`` for single-flag slots.

    Every ``reset`` starts a new run and returns its token. A mark carrying
    an older token comes from a unit of an abandoned run and is dropped.
    """

    def __init__(self, listener: Optional[ProgressListener] = None):
        self._lock = threading.RLock()
        self._state: dict[str, SlotValue] = {}
        self._listener = listener
        self._run = 0
        self.reset({})

    @property
    def run(self) -> int:
        """Token of the current run."""
        with self._lock:
            return self._run

    def set_listener(self, listener: Optional[ProgressListener]) -> None:
        self._listener = listener

    def reset(self, unit_counts: dict[str, int], flags: Iterable[str] = FLAG_SLOTS) -> int:
        """Start a new run: every list slot sized to its count, every flag false."""
        with self._lock:
            state: dict[str, SlotValue] = {name: () for name in LIST_SLOTS}
            for name, count in unit_counts.items():
                state[name] = (False,) * count
            for name in flags:
                state[name] = False
            self._state = state
            self._run += 1
            return self._run

    def mark(self, stage: str, index: Optional[int] = None, run: Optional[int] = None) -> bool:
        """
        Flip one unit (or a flag) to done.

        Returns False if it was already done, or if ``run`` is not the
        current run's token; a slot never goes back to false.
        """
        with self._lock:
            if run is not None and run != self._run:
                return False
            if stage not in self._state:
                raise KeyError(f"Unknown progress slot '{stage}'")
            current = self._state[stage]

            if isinstance(current, tuple):
                if index is None or not 0 <= index < len(current):
                    raise IndexError(f"{stage}: unit index {index} out of range")
                if current[index]:
                    return False
                self._state[stage] = tuple(
                    True if i == index else done for i, done in enumerate(current)
                )
            else:
                if current:
                    return False
                self._state[stage] = True

            if self._listener is not None:
                self._listener(stage, index, dict(self._state))
            return True

    def get(self, stage: str) -> SlotValue:
        with self._lock:
            return self._state[stage]

    def is_complete(self, stage: str) -> bool:
        value = self.get(stage)
        if isinstance(value, tuple):
            return bool(value) and all(value)
        return value

    def snapshot(self) -> dict[str, SlotValue]:
        with self._lock:
            return dict(self._state)
