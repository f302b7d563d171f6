# heavythink/stage.py
"""
Stage executor: fan N prompts out to the completion client, join on all.

Units of one stage never depend on each other, so all of them are submitted
at once. The returned list is in submission order whatever order the units
finish in. One failed unit fails the stage; pending units are cancelled and
the error is raised to the orchestrator.
"""

from __future__ import annotations

import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Optional, Protocol, Sequence

from heavythink import log
from heavythink.context import PromptSpec
from heavythink.errors import StageFailedError, UpstreamError
from heavythink.memory import Part, Turn


class CompletionClient(Protocol):
    def complete(
        self, history: Sequence[Turn], parts: Sequence[Part], system: str
    ) -> str: ...


class StageExecutor:
    """
    Runs stages against one completion client on a shared thread pool.

    Parameters
    ----------
    client : CompletionClient
        Anything with ``complete(history, parts, system) -> str``.
    max_workers : int
        Pool size; a stage wider than this queues its extra units.
    """

    def __init__(self, client: CompletionClient, max_workers: int = 8):
        self._client = client
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="heavy-unit")

    def run_stage(
        self,
        stage: str,
        units: Sequence[PromptSpec],
        history: Sequence[Turn] = (),
        on_unit_done: Optional[Callable[[int], None]] = None,
    ) -> list[str]:
        """
        Dispatch every unit concurrently and wait for all of them.

        ``on_unit_done(i)`` runs once per unit, right after unit ``i``'s
        completion succeeds, on the worker thread.

        Raises:
            StageFailedError: if any unit raises UpstreamError; other
                exceptions propagate unchanged
        """
        t0 = time.time()

        def _run_one(index: int, spec: PromptSpec) -> str:
            log.unit(stage, index, f"dispatching ({sum(len(p.text or '') for p in spec.parts):,} chars)")
            text = str(self._client.complete(history, spec.parts, spec.system))
            if not text.strip():
                raise UpstreamError(f"{stage}[{index}]: empty completion")
            if on_unit_done is not None:
                on_unit_done(index)
            log.unit(stage, index, f"done ({len(text):,} chars)")
            return text

        futures = {
            self._executor.submit(_run_one, i, spec): i
            for i, spec in enumerate(units)
        }
        finished, pending = wait(futures, return_when=FIRST_EXCEPTION)

        for fut in finished:
            err = fut.exception()
            if err is None:
                continue
            for other in pending:
                other.cancel()
            index = futures[fut]
            log.error(f"{stage}: unit {index} failed: {err}")
            if isinstance(err, UpstreamError):
                raise StageFailedError(stage, index, err) from err
            raise err

        results: list[str] = [""] * len(units)
        for fut, index in futures.items():
            results[index] = fut.result()

        log.ok(f"{stage}: {len(units)}/{len(units)} units done ({time.time() - t0:.1f}s)")
        return results

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
