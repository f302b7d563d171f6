"""End-to-end pipeline runs against the scripted client."""

import re
import threading

import pytest

from heavythink.context import (
    CRITIQUE_SYSTEM_INSTRUCTION,
    ELABORATION_SYSTEM_INSTRUCTION,
    FINAL_REVIEW_SYSTEM_INSTRUCTION,
    INITIAL_SYSTEM_INSTRUCTION,
    REFINEMENT_SYSTEM_INSTRUCTION,
    REVISION_SYSTEM_INSTRUCTION,
    SYNTHESIZER_SYSTEM_INSTRUCTION,
)
from heavythink.errors import StageFailedError, UpstreamError
from heavythink.orchestration import Orchestrator
from heavythink.progress import ProgressTracker
from heavythink.topology import Topology
from heavythink.validator import SyntaxValidator


BROKEN_ANSWER = "Here you go:\n\n```python\ndef f(:\n    pass\n```\n\nDone."


def _initials(client):
    return {f"initial-{i}" for i in range(len(client.calls_for(INITIAL_SYSTEM_INSTRUCTION)))}


class RecordingTracker(ProgressTracker):
    """Records every mark attempt, including ones that change nothing."""

    def __init__(self):
        super().__init__()
        self.attempts = []
        self.stale_attempted = threading.Event()

    def mark(self, stage, index=None, run=None):
        changed = super().mark(stage, index, run)
        self.attempts.append((stage, index, run, changed))
        if run is not None and run != self.run:
            self.stale_attempted.set()
        return changed


class StragglerClient:
    """
    First run: one refine unit hangs while its siblings fail, so the run is
    abandoned with that unit still in flight. Second run: the initial stage
    lets the straggler finish and waits until it has reported progress.
    """

    def __init__(self):
        self.tracker = None
        self.second_run = False
        self.refining_when_straggler_returned = None
        self._lock = threading.Lock()
        self._refines = 0
        self._straggler_in_flight = threading.Event()
        self._release = threading.Event()

    def complete(self, history, parts, system):
        if system == INITIAL_SYSTEM_INSTRUCTION:
            if self.second_run:
                self._release.set()
                assert self.tracker.stale_attempted.wait(timeout=5)
                with self._lock:
                    if self.refining_when_straggler_returned is None:
                        self.refining_when_straggler_returned = self.tracker.get("refining")
            return "answer"
        if system == REFINEMENT_SYSTEM_INSTRUCTION and not self.second_run:
            with self._lock:
                self._refines += 1
                n = self._refines
            if n == 1:
                self._straggler_in_flight.set()
                assert self._release.wait(timeout=5)
                return "late refinement"
            assert self._straggler_in_flight.wait(timeout=5)
            raise UpstreamError("quota exceeded")
        if system == REFINEMENT_SYSTEM_INSTRUCTION:
            return "refined"
        return "Final answer."


class TestStandard:
    """Four agents, one refine round, one synthesis, then the repair pass."""

    def test_call_counts_and_peer_visibility(self, make_client, make_validator):
        client = make_client(final_text=BROKEN_ANSWER)
        result = Orchestrator(client, validator=make_validator()).run((), "reverse a string")

        assert len(client.calls_for(INITIAL_SYSTEM_INSTRUCTION)) == 4
        refines = client.calls_for(REFINEMENT_SYSTEM_INSTRUCTION)
        assert len(refines) == 4
        assert len(client.calls_for(SYNTHESIZER_SYSTEM_INSTRUCTION)) == 1
        assert len(client.correction_calls) == 1
        assert len(client.calls) == 10
        assert result.topology is Topology.STANDARD
        assert result.agents == 4

        initials = _initials(client)
        owners = set()
        for call in refines:
            own = re.search(r'working with is: "(.*?)"\.', call.context).group(1)
            owners.add(own)
            peers = call.context.split("The other agents responded with:\n")[1]
            assert set(re.findall(r"initial-\d", peers)) == initials - {own}
        assert owners == initials

    def test_synthesis_sees_all_refined_answers(self, fake_client):
        Orchestrator(fake_client).run((), "q")
        (synth,) = fake_client.calls_for(SYNTHESIZER_SYSTEM_INSTRUCTION)
        for name in _initials(fake_client):
            assert f'"refined({name})"' in synth.context

    def test_correction_replaces_the_block_span(self, make_client, make_validator):
        client = make_client(final_text=BROKEN_ANSWER)
        result = Orchestrator(client, validator=make_validator()).run((), "q")

        assert result.repaired
        assert result.repair.diagnostic == "SyntaxError: invalid syntax (line 1)"
        assert result.text == "Here you go:\n\n```python\nfixed()\n```\n\nDone."
        (correction,) = client.correction_calls
        assert "def f(:" in correction.parts[0].text
        assert "ERROR MESSAGE: SyntaxError: invalid syntax (line 1)" in correction.system

    def test_clean_answer_passes_through(self, fake_client):
        tracker = ProgressTracker()
        result = Orchestrator(fake_client, tracker=tracker).run((), "q")
        assert result.text == "Final answer."
        assert not result.repaired
        assert fake_client.correction_calls == []
        assert tracker.get("verifying") is False

    def test_history_reaches_every_call(self, fake_client):
        history = ("earlier-user", "earlier-assistant")
        Orchestrator(fake_client).run(history, "q")
        assert all(c.history == history for c in fake_client.calls)

    def test_stage_events_in_order(self, fake_client):
        events = []
        Orchestrator(fake_client).run((), "q", on_stage=events.append)
        assert [e.stage for e in events] == ["initial", "refine", "synthesize", "verify"]
        assert [e.index for e in events] == [1, 2, 3, 4]
        assert {e.total for e in events} == {4}
        assert events[0].status == "Initializing agents..."

    def test_empty_query_rejected(self, fake_client):
        with pytest.raises(ValueError):
            Orchestrator(fake_client).run((), "")
        assert fake_client.calls == []


class TestElaboration:
    """Initial, elaborate, refine, synthesize."""

    def test_elaboration_adds_one_round(self, fake_client):
        result = Orchestrator(fake_client).run((), "q", elaborate=True)
        assert result.topology is Topology.ELABORATION
        assert len(fake_client.calls) == 13

        elaborations = fake_client.calls_for(ELABORATION_SYSTEM_INSTRUCTION)
        assert len(elaborations) == 4
        refines = fake_client.calls_for(REFINEMENT_SYSTEM_INSTRUCTION)
        assert all("elaborated(initial-" in c.context for c in refines)

    def test_deep_wins_over_elaborate(self, fake_client):
        result = Orchestrator(fake_client).run((), "q", deep=True, elaborate=True)
        assert result.topology is Topology.DEEP
        assert fake_client.calls_for(ELABORATION_SYSTEM_INSTRUCTION) == []


class TestDeep:
    """Six agents with the critique ring, grouped synthesis and review."""

    def test_call_counts(self, fake_client):
        result = Orchestrator(fake_client).run((), "q", deep=True)
        assert result.agents == 6
        assert len(fake_client.calls_for(CRITIQUE_SYSTEM_INSTRUCTION)) == 6
        assert len(fake_client.calls_for(REVISION_SYSTEM_INSTRUCTION)) == 6
        assert len(fake_client.calls_for(SYNTHESIZER_SYSTEM_INSTRUCTION)) == 3
        assert len(fake_client.calls_for(FINAL_REVIEW_SYSTEM_INSTRUCTION)) == 1
        assert len(fake_client.calls) == 28
        assert result.text == "Final answer."

    def test_each_revision_receives_a_critique_of_itself(self, fake_client):
        Orchestrator(fake_client).run((), "q", deep=True)
        revisions = fake_client.calls_for(REVISION_SYSTEM_INSTRUCTION)
        originals = set()
        for call in revisions:
            original = re.search(r"---ORIGINAL---\n(.*?)\n\n", call.context, re.DOTALL).group(1)
            critique = re.search(r"---CRITIQUE---\n(.*?)\n\n", call.context, re.DOTALL).group(1)
            assert critique == f"critique of {original}"
            originals.add(original)
        assert len(originals) == 6

    def test_no_agent_critiques_itself(self, fake_client):
        Orchestrator(fake_client).run((), "q", deep=True)
        targets = [
            re.search(r"---RESPONSE---\n(.*)$", c.context, re.DOTALL).group(1)
            for c in fake_client.calls_for(CRITIQUE_SYSTEM_INSTRUCTION)
        ]
        assert len(set(targets)) == 6

    def test_group_merges_are_disjoint_and_complete(self, fake_client):
        Orchestrator(fake_client).run((), "q", deep=True)
        synths = fake_client.calls_for(SYNTHESIZER_SYSTEM_INSTRUCTION)
        groups = [
            set(re.findall(r'Refined \d+:\n"(.*?)"', c.context))
            for c in synths if c.context.startswith("Here are 3 refined")
        ]
        assert len(groups) == 2
        assert all(len(g) == 3 for g in groups)
        assert groups[0].isdisjoint(groups[1])
        assert groups[0] | groups[1] == {f"revised(refined({n}))" for n in _initials(fake_client)}

        (final,) = [c for c in synths if c.context.startswith("Here are 2 synthesized")]
        assert final.context.count("merged(") == 2

    def test_progress_complete_except_verifying(self, fake_client):
        tracker = ProgressTracker()
        Orchestrator(fake_client, tracker=tracker).run((), "q", deep=True)
        snap = tracker.snapshot()
        for slot in ("initial", "refining", "critiquing", "revising"):
            assert snap[slot] == (True,) * 6
        assert snap["synthesizing"] == (True, True)
        assert snap["final_synthesizing"] is True
        assert snap["reviewing"] is True
        assert snap["verifying"] is False

    def test_progress_transitions_follow_stage_order(self, fake_client):
        seen = []
        tracker = ProgressTracker(listener=lambda stage, index, snap: seen.append((stage, index)))
        Orchestrator(fake_client, tracker=tracker).run((), "q", deep=True)

        assert len(seen) == len(set(seen)) == 28
        order = [stage for stage, _ in seen]
        slots = ["initial", "refining", "critiquing", "revising", "synthesizing",
                 "final_synthesizing", "reviewing"]
        positions = [[i for i, s in enumerate(order) if s == slot] for slot in slots]
        for earlier, later in zip(positions, positions[1:]):
            assert max(earlier) < min(later)

    def test_custom_agent_count(self, fake_client):
        result = Orchestrator(fake_client, agent_counts={Topology.DEEP: 4}).run((), "q", deep=True)
        assert result.agents == 4
        assert len(fake_client.calls) == 4 * 4 + 2 + 1 + 1


class TestRepairPass:
    """Single-shot correction against the real checkers."""

    def test_only_first_broken_block_is_corrected(self, make_client):
        text = (
            "```python\nprint('ok')\n```\n"
            "```python\ndef a(:\n```\n"
            "```javascript\nfunction (x {\n```\n"
        )
        client = make_client(final_text=text)
        result = Orchestrator(client, validator=SyntaxValidator()).run((), "q")

        assert len(client.correction_calls) == 1
        assert "def a(:" in client.correction_calls[0].parts[0].text
        assert result.text == (
            "```python\nprint('ok')\n```\n"
            "```python\nfixed()\n```\n"
            "```javascript\nfunction (x {\n```\n"
        )

    def test_unknown_language_gets_no_correction(self, make_client):
        text = "```rust\nfn main( {\n```"
        client = make_client(final_text=text)
        result = Orchestrator(client, validator=SyntaxValidator()).run((), "q")
        assert client.correction_calls == []
        assert result.text == text

    def test_verifying_flag_marks_a_correction(self, make_client, make_validator):
        tracker = ProgressTracker()
        client = make_client(final_text=BROKEN_ANSWER)
        Orchestrator(client, validator=make_validator(), tracker=tracker).run((), "q")
        assert tracker.get("verifying") is True

    def test_failed_correction_fails_the_run(self, make_client, make_validator):
        client = make_client(final_text=BROKEN_ANSWER)
        client.fail_when = lambda call, n: call.system.startswith("You are a code correction AI")
        with pytest.raises(UpstreamError):
            Orchestrator(client, validator=make_validator()).run((), "q")


class TestFailure:
    """Any unit failure ends the run before later stages start."""

    def test_refine_failure_short_circuits(self, fake_client):
        fake_client.fail_when = lambda call, n: call.system == REFINEMENT_SYSTEM_INSTRUCTION and n == 2
        with pytest.raises(StageFailedError) as exc:
            Orchestrator(fake_client).run((), "q")
        assert exc.value.stage == "refine"
        assert fake_client.calls_for(SYNTHESIZER_SYSTEM_INSTRUCTION) == []
        assert fake_client.correction_calls == []

    def test_abandoned_unit_never_marks_the_next_run(self):
        client = StragglerClient()
        tracker = RecordingTracker()
        client.tracker = tracker
        orchestrator = Orchestrator(client, tracker=tracker)

        with pytest.raises(StageFailedError):
            orchestrator.run((), "q")
        first_run = tracker.run

        client.second_run = True
        result = orchestrator.run((), "q")

        stale = [a for a in tracker.attempts if a[2] == first_run and a[0] == "refining"]
        assert stale, "straggler never reported"
        assert all(changed is False for *_, changed in stale)
        # the straggler reported while run 2 was still in its initial stage
        assert client.refining_when_straggler_returned == (False,) * 4
        assert result.text == "Final answer."
        assert tracker.get("refining") == (True,) * 4

    def test_critique_failure_stops_deep_run(self, fake_client):
        fake_client.fail_when = lambda call, n: call.system == CRITIQUE_SYSTEM_INSTRUCTION
        with pytest.raises(StageFailedError):
            Orchestrator(fake_client).run((), "q", deep=True)
        assert fake_client.calls_for(REVISION_SYSTEM_INSTRUCTION) == []
