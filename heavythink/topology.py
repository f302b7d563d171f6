# heavythink/topology.py
"""
Stage topologies.

A topology is a fixed, ordered list of stages with a unit count per stage.
It depends only on the mode and the agent count, never on content:

    STANDARD     initial → refine → synthesize
    ELABORATION  initial → elaborate → refine → synthesize
    DEEP         initial → refine → critique → revise
                 → parallel_synthesize (2 groups) → final_synthesize → review
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

INITIAL = "initial"
ELABORATE = "elaborate"
REFINE = "refine"
CRITIQUE = "critique"
REVISE = "revise"
SYNTHESIZE = "synthesize"
PARALLEL_SYNTHESIZE = "parallel_synthesize"
FINAL_SYNTHESIZE = "final_synthesize"
REVIEW = "review"

SYNTHESIS_GROUPS = 2

# kind -> (progress slot, status message)
_STAGE_INFO = {
    INITIAL: ("initial", "Initializing agents..."),
    ELABORATE: ("elaborating", "Elaborating answers..."),
    REFINE: ("refining", "Refining answers..."),
    CRITIQUE: ("critiquing", "Critiquing responses..."),
    REVISE: ("revising", "Revising based on feedback..."),
    SYNTHESIZE: ("synthesizing", "Synthesizing final response..."),
    PARALLEL_SYNTHESIZE: ("synthesizing", "Synthesizing responses..."),
    FINAL_SYNTHESIZE: ("final_synthesizing", "Finalizing response..."),
    REVIEW: ("reviewing", "Performing final review..."),
}

# Single-unit stages tracked as one flag rather than a list
_FLAG_KINDS = {FINAL_SYNTHESIZE, REVIEW}


@dataclass(frozen=True)
class StageSpec:
    kind: str
    units: int

    @property
    def progress_slot(self) -> str:
        return _STAGE_INFO[self.kind][0]

    @property
    def status(self) -> str:
        return _STAGE_INFO[self.kind][1]

    @property
    def is_flag(self) -> bool:
        return self.kind in _FLAG_KINDS


class Topology(Enum):
    STANDARD = "standard"
    ELABORATION = "elaboration"
    DEEP = "deep"

    @classmethod
    def select(cls, deep: bool, elaborate: bool = False) -> "Topology":
        if deep:
            return cls.DEEP
        return cls.ELABORATION if elaborate else cls.STANDARD

    @property
    def default_agents(self) -> int:
        return 6 if self is Topology.DEEP else 4

    def stages(self, agents: int = 0) -> tuple[StageSpec, ...]:
        """Ordered stage list for ``agents`` parallel agents (0 = mode default)."""
        n = agents or self.default_agents
        if n < 2:
            raise ValueError(f"{self.value} topology needs at least 2 agents, got {n}")

        if self is Topology.STANDARD:
            return (StageSpec(INITIAL, n), StageSpec(REFINE, n), StageSpec(SYNTHESIZE, 1))

        if self is Topology.ELABORATION:
            return (
                StageSpec(INITIAL, n),
                StageSpec(ELABORATE, n),
                StageSpec(REFINE, n),
                StageSpec(SYNTHESIZE, 1),
            )

        if n % SYNTHESIS_GROUPS:
            raise ValueError(
                f"deep topology splits agents into {SYNTHESIS_GROUPS} equal groups; got {n}"
            )
        return (
            StageSpec(INITIAL, n),
            StageSpec(REFINE, n),
            StageSpec(CRITIQUE, n),
            StageSpec(REVISE, n),
            StageSpec(PARALLEL_SYNTHESIZE, SYNTHESIS_GROUPS),
            StageSpec(FINAL_SYNTHESIZE, 1),
            StageSpec(REVIEW, 1),
        )

    def progress_layout(self, agents: int = 0) -> tuple[dict[str, int], list[str]]:
        """(list-slot unit counts, flag slots) for resetting a ProgressTracker."""
        counts: dict[str, int] = {}
        flags = ["verifying"]
        for spec in self.stages(agents):
            if spec.is_flag:
                flags.append(spec.progress_slot)
            else:
                counts[spec.progress_slot] = spec.units
        return counts, flags
