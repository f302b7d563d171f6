# heavythink/orchestration.py
"""
Staged multi-agent orchestration.

One query is answered by several agents in fan-out / fan-in stages chosen
by a topology:

  1. Initial      every agent answers the query independently
  2. Elaborate    (elaboration topology) each agent expands its own answer
  3. Refine       each agent re-answers after reading all peers' answers
  4. Critique     (deep) agent i critiques agent i+1's answer
  5. Revise       (deep) agent i revises using the critique written about it
  6. Synthesize   one merge of all answers, or in deep mode two group
                  merges followed by a final merge and a polish review
  7. Validate     the first broken Python/JS block gets one correction

A stage starts only after every unit of the previous stage has produced
text. Any failed call ends the run with an exception; there is no partial
answer and no retry.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from heavythink import context, log
from heavythink.attachments import Attachment, build_user_parts
from heavythink.context import PromptSpec
from heavythink.memory import Part, Turn
from heavythink.progress import ProgressTracker
from heavythink.repair import CodeRepairer, RepairOutcome
from heavythink.stage import CompletionClient, StageExecutor
from heavythink.topology import (
    CRITIQUE,
    ELABORATE,
    FINAL_SYNTHESIZE,
    INITIAL,
    PARALLEL_SYNTHESIZE,
    REFINE,
    REVIEW,
    REVISE,
    SYNTHESIZE,
    StageSpec,
    Topology,
)
from heavythink.validator import SyntaxValidator

VERIFYING_STATUS = "Verifying code..."


@dataclass(frozen=True)
class StageEvent:
    stage: str
    status: str
    index: int
    total: int


StageListener = Callable[[StageEvent], None]


@dataclass
class _RunState:
    query: str
    shared: tuple[Part, ...]
    answers: list[str] = field(default_factory=list)
    critiques: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class OrchestrationResult:
    text: str
    topology: Topology
    agents: int
    repair: RepairOutcome
    stage_seconds: dict[str, float]

    @property
    def repaired(self) -> bool:
        return self.repair.repaired


# ── Stage prompt builders (kind -> units) ───────────────────────────────

def _build_initial(state: _RunState, spec: StageSpec) -> list[PromptSpec]:
    return context.initial(state.shared, spec.units)


def _build_elaborate(state: _RunState, spec: StageSpec) -> list[PromptSpec]:
    return context.elaborate(state.shared, state.answers)


def _build_refine(state: _RunState, spec: StageSpec) -> list[PromptSpec]:
    return context.refine(state.shared, state.answers)


def _build_critique(state: _RunState, spec: StageSpec) -> list[PromptSpec]:
    return context.critique(state.shared, state.query, state.answers)


def _build_revise(state: _RunState, spec: StageSpec) -> list[PromptSpec]:
    return context.revise(state.shared, state.answers, state.critiques)


def _build_synthesize(state: _RunState, spec: StageSpec) -> list[PromptSpec]:
    return context.synthesize(state.shared, state.answers)


def _build_parallel_synthesize(state: _RunState, spec: StageSpec) -> list[PromptSpec]:
    return context.parallel_synthesize(state.shared, state.answers, groups=spec.units)


def _build_final_synthesize(state: _RunState, spec: StageSpec) -> list[PromptSpec]:
    return context.final_synthesize(state.shared, state.answers)


def _build_review(state: _RunState, spec: StageSpec) -> list[PromptSpec]:
    return context.review(state.shared, state.query, state.answers[0])


STAGE_BUILDERS: dict[str, Callable[[_RunState, StageSpec], list[PromptSpec]]] = {
    INITIAL: _build_initial,
    ELABORATE: _build_elaborate,
    REFINE: _build_refine,
    CRITIQUE: _build_critique,
    REVISE: _build_revise,
    SYNTHESIZE: _build_synthesize,
    PARALLEL_SYNTHESIZE: _build_parallel_synthesize,
    FINAL_SYNTHESIZE: _build_final_synthesize,
    REVIEW: _build_review,
}


class Orchestrator:
    """
    Generic stage sequencer over a topology, plus the code-repair pass.

    Parameters
    ----------
    client : CompletionClient
        Completion client shared by every unit.
    validator : SyntaxValidator, optional
        Code checker for the repair pass (Python + JS by default).
    tracker : ProgressTracker, optional
        Progress sink; reset at the start of every run.
    max_workers : int
        Thread pool size for unit dispatch.
    agent_counts : dict, optional
        Per-topology agent count overrides, e.g. ``{Topology.DEEP: 8}``.
    """

    def __init__(
        self,
        client: CompletionClient,
        validator: Optional[SyntaxValidator] = None,
        tracker: Optional[ProgressTracker] = None,
        max_workers: int = 8,
        agent_counts: Optional[dict[Topology, int]] = None,
    ):
        self._client = client
        self._executor = StageExecutor(client, max_workers=max_workers)
        self._repairer = CodeRepairer(client, validator or SyntaxValidator())
        self.tracker = tracker or ProgressTracker()
        self._agent_counts = agent_counts or {}

    def agents_for(self, topology: Topology) -> int:
        return self._agent_counts.get(topology) or topology.default_agents

    def run(
        self,
        history: Sequence[Turn],
        query: str,
        attachment: Optional[Attachment] = None,
        deep: bool = False,
        elaborate: bool = False,
        on_stage: Optional[StageListener] = None,
    ) -> OrchestrationResult:
        """
        Answer ``query`` given prior ``history`` (which excludes this turn).

        Raises:
            UpstreamError: any failed completion; the run is abandoned
            ValueError: empty submission or impossible topology
        """
        shared = tuple(build_user_parts(query, attachment))
        if not shared:
            raise ValueError("Nothing to answer: empty query and no attachment")

        topology = Topology.select(deep, elaborate)
        agents = self.agents_for(topology)
        stages = topology.stages(agents)
        history = tuple(history)

        counts, flags = topology.progress_layout(agents)
        run_token = self.tracker.reset(counts, flags)

        log.init()
        log.step(f"{topology.value} topology: {agents} agents, {len(stages)} stages")

        state = _RunState(query=query, shared=shared)
        timings: dict[str, float] = {}
        total = len(stages) + 1

        for num, spec in enumerate(stages, start=1):
            self._emit(on_stage, spec.kind, spec.status, num, total)
            log.phase(num, total, spec.status)

            units = STAGE_BUILDERS[spec.kind](state, spec)
            if len(units) != spec.units:
                raise RuntimeError(f"{spec.kind}: built {len(units)} prompts for {spec.units} units")

            t0 = time.time()
            outputs = self._executor.run_stage(
                spec.kind, units, history, on_unit_done=self._progress_sink(spec, run_token)
            )
            timings[spec.kind] = time.time() - t0

            if spec.kind == CRITIQUE:
                state.critiques = outputs
            else:
                state.answers = outputs

        candidate = state.answers[0]

        self._emit(on_stage, "verify", VERIFYING_STATUS, total, total)
        log.phase(total, total, VERIFYING_STATUS)
        t0 = time.time()
        outcome = self._repairer.repair(
            candidate, history, on_repaired=lambda: self.tracker.mark("verifying", run=run_token)
        )
        timings["verify"] = time.time() - t0

        log.done(f"{topology.value}, {agents} agents" + (", 1 block corrected" if outcome.repaired else ""))
        return OrchestrationResult(
            text=outcome.text,
            topology=topology,
            agents=agents,
            repair=outcome,
            stage_seconds=timings,
        )

    def _progress_sink(self, spec: StageSpec, run_token: int) -> Callable[[int], None]:
        slot = spec.progress_slot
        if spec.is_flag:
            return lambda index: self.tracker.mark(slot, run=run_token)
        return lambda index: self.tracker.mark(slot, index, run=run_token)

    @staticmethod
    def _emit(listener: Optional[StageListener], stage: str, status: str, index: int, total: int):
        if listener is not None:
            listener(StageEvent(stage=stage, status=status, index=index, total=total))

    def close(self) -> None:
        self._executor.shutdown()
