"""Tests for per-stage prompt construction and peer selection."""

import pytest

from heavythink import context
from heavythink.memory import Part


SHARED = (Part.from_binary("image/png", "aGVsbG8="), Part.from_text("write a function that reverses a string"))
OUTPUTS = [f"a{i}" for i in range(6)]


class TestSharedParts:
    """Every stage prompt carries the shared parts unchanged, then one context part."""

    def test_initial_is_plain_user_turn(self):
        specs = context.initial(SHARED, 4)
        assert len(specs) == 4
        assert all(s.parts == SHARED for s in specs)
        assert all(s.system == context.INITIAL_SYSTEM_INSTRUCTION for s in specs)

    @pytest.mark.parametrize("specs", [
        context.refine(SHARED, OUTPUTS[:4]),
        context.critique(SHARED, "q", OUTPUTS),
        context.synthesize(SHARED, OUTPUTS[:4]),
        context.review(SHARED, "q", "text"),
    ])
    def test_context_part_follows_shared_parts(self, specs):
        for spec in specs:
            assert spec.parts[:2] == SHARED
            assert len(spec.parts) == 3
            assert spec.parts[2].text.startswith(context.INTERNAL_CONTEXT_HEADER)


class TestRefine:
    """Refinement sees all other units' outputs."""

    def test_each_unit_sees_every_peer_but_itself(self):
        specs = context.refine(SHARED, OUTPUTS[:4])
        for i, spec in enumerate(specs):
            ctx = spec.context_text
            assert ctx.startswith(f'The response I\'m working with is: "a{i}".')
            peers_section = ctx.split("The other agents responded with:\n")[1]
            for j in range(4):
                if j == i:
                    assert f'"a{j}"' not in peers_section
                else:
                    assert f'"a{j}"' in peers_section

    def test_peers_are_numbered_in_index_order(self):
        ctx = context.refine(SHARED, OUTPUTS[:4])[2].context_text
        assert '1. "a0"\n2. "a1"\n3. "a3"' in ctx


class TestCritiqueRing:
    """Deep mode critique / revision ring over 6 units."""

    def test_unit_i_critiques_next_unit(self):
        specs = context.critique(SHARED, "q", OUTPUTS)
        for i, spec in enumerate(specs):
            target = (i + 1) % 6
            assert spec.context_text.endswith(f"---RESPONSE---\na{target}")
            assert target != i

    def test_each_unit_reviewed_exactly_once(self):
        targets = [context.critique_target(i, 6) for i in range(6)]
        assert sorted(targets) == list(range(6))

    def test_revision_uses_critique_written_about_it(self):
        critiques = [f"c{i}" for i in range(6)]
        specs = context.revise(SHARED, OUTPUTS, critiques)
        for i, spec in enumerate(specs):
            author = (i - 1 + 6) % 6
            assert f"---ORIGINAL---\na{i}\n" in spec.context_text
            assert f"---CRITIQUE---\nc{author}\n" in spec.context_text
            # the author of that critique reviewed unit i
            assert context.critique_target(author, 6) == i

    def test_revise_needs_one_critique_per_output(self):
        with pytest.raises(ValueError):
            context.revise(SHARED, OUTPUTS, ["c0"])


class TestSynthesis:
    """Synthesis and the two-group parallel synthesis."""

    def test_single_synthesis_sees_everything(self):
        (spec,) = context.synthesize(SHARED, OUTPUTS[:4])
        assert spec.context_text.startswith("Here are the 4 refined responses.")
        for i in range(4):
            assert f'Refined {i + 1}:\n"a{i}"' in spec.context_text

    def test_parallel_groups_are_contiguous_halves(self):
        assert context.partition(OUTPUTS, 2) == [["a0", "a1", "a2"], ["a3", "a4", "a5"]]
        first, second = context.parallel_synthesize(SHARED, OUTPUTS)
        assert all(f'"a{i}"' in first.context_text for i in range(3))
        assert not any(f'"a{i}"' in first.context_text for i in range(3, 6))
        assert all(f'"a{i}"' in second.context_text for i in range(3, 6))

    def test_partition_rejects_uneven_split(self):
        with pytest.raises(ValueError):
            context.partition(OUTPUTS[:5], 2)

    def test_final_synthesis_combines_group_merges(self):
        (spec,) = context.final_synthesize(SHARED, ["m0", "m1"])
        assert "---SYNTHESIZED RESPONSE 1---\nm0" in spec.context_text
        assert "---SYNTHESIZED RESPONSE 2---\nm1" in spec.context_text


class TestRepairRequest:
    """The correction turn."""

    def test_diagnostic_goes_into_system_instruction(self):
        spec = context.repair_request("python", "def f(:\n", "SyntaxError: invalid syntax (line 1)")
        assert "ERROR MESSAGE: SyntaxError: invalid syntax (line 1)" in spec.system
        assert spec.parts == (Part.from_text("Correct the following code:\n\n```python\ndef f(:\n\n```"),)
