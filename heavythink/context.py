# heavythink/context.py
"""
Per-unit prompt construction for every stage.

Every stage prompt is the shared user parts (attachment, then query text)
followed by one text part carrying the internal context, which quotes the
previous stage's outputs. History is passed to the client separately and
is never touched here.

Peer selection per stage:
  refine      unit i sees all other units' outputs, in index order
  critique    unit i critiques output (i + 1) mod N
  revise      unit i uses critique (i - 1 + N) mod N, the one written about it
  synthesize  one unit sees everything
  parallel    contiguous, disjoint groups, one unit per group
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from heavythink.memory import Part

INTERNAL_CONTEXT_HEADER = "\n\n---INTERNAL CONTEXT---\n"

INITIAL_SYSTEM_INSTRUCTION = (
    "You are a foundational AI agent. Your goal is to provide a strong, initial response to "
    "the user's query, whatever the topic. Break down the request, identify the core "
    "requirements, and generate a clear, well-structured starting point. This could be an "
    "outline, a basic explanation, or a foundational concept.\n\n"
    "**If the user's request involves coding:** Provide a foundational code structure or "
    "algorithm. Your code should be clean, well-commented, and directly address the core "
    "problem. Explain your approach briefly. Your response is the first step for a team of AI "
    "agents, so clarity and correctness are paramount."
)

ELABORATION_SYSTEM_INSTRUCTION = (
    "You are an elaboration AI. You will receive an initial response to the user's query. "
    "Your task is to expand it: fill in missing details, add concrete examples, cover edge "
    "cases and spell out any steps the initial response skipped. Keep everything that was "
    "correct and do not change its overall direction.\n\n"
    "**If the content is code:** Complete any unfinished parts, add input handling and the "
    "boilerplate needed to run it, and explain the additions briefly."
)

REFINEMENT_SYSTEM_INSTRUCTION = (
    "You are a critical analysis and refinement AI. You will receive an initial response. Your "
    "task is to critically evaluate it. Identify logical fallacies, find missing details, "
    "consider alternative perspectives, and improve the overall quality and accuracy of the "
    "response. Explain the specific changes you made and why they are improvements.\n\n"
    "**If the content is code:** Your task is to identify bugs, logical errors, edge cases, or "
    "areas for optimization. Refactor and improve the provided code, explaining the specific "
    "changes you made and why they are necessary. Your goal is to produce a more robust and "
    "efficient version of the code."
)

CRITIQUE_SYSTEM_INSTRUCTION = (
    "You are a critical reviewer. You will be given an initial user query and a proposed "
    "response from another AI agent. Your sole task is to analyze the response and provide a "
    "concise, constructive critique. Identify specific weaknesses, logical fallacies, missing "
    "information, or potential inaccuracies. Do NOT write your own full response to the user. "
    "Your output should be ONLY the critique."
)

REVISION_SYSTEM_INSTRUCTION = (
    "You are a revision specialist. You will receive your original response, a user's query, "
    "and a critique of your response from a peer AI. Your task is to generate a new, improved "
    "final version of your response that directly addresses the points raised in the "
    "critique. Integrate the valid feedback to make your answer more accurate, complete, and "
    "well-reasoned."
)

SYNTHESIZER_SYSTEM_INSTRUCTION = (
    "You are a master synthesizer AI. You will receive multiple refined responses. Your task "
    "is to analyze, compare, and merge the best elements from each to create a single, "
    "comprehensive, and polished final answer. Ensure the final response is cohesive, "
    "well-organized, and directly addresses all aspects of the user's original query.\n\n"
    "**If the responses are code:** Synthesize the best elements from each solution to create "
    "a single, production-quality final version. Ensure the final code is complete and "
    "runnable, including all necessary boilerplate (imports, main function, etc.). Add concise "
    "comments where necessary. Your output should BE the final code block, with a brief "
    "explanation of the overall design."
)

FINAL_REVIEW_SYSTEM_INSTRUCTION = (
    "You are a final reviewer AI, the last quality gate before a response is sent to the "
    "user. You will receive a fully synthesized response. Your task is to perform a final "
    "check for clarity, coherence, conciseness, and tone. Make minor edits to fix grammatical "
    "errors, improve wording, and ensure the answer is polished and directly addresses the "
    "user's query. Do NOT make substantial changes or add new information. Your output should "
    "be the final, polished text."
)

CORRECTION_SYSTEM_TEMPLATE = (
    "You are a code correction AI. You will be given a block of code that has a syntax error. "
    "Your SOLE task is to fix the error and return only the complete, corrected, runnable code "
    "block. Do NOT add any explanation or surrounding text.\n"
    "---\n"
    "ERROR MESSAGE: {diagnostic}\n"
    "---"
)


@dataclass(frozen=True)
class PromptSpec:
    """One unit's prompt: the current-turn parts plus a system instruction."""

    parts: tuple[Part, ...]
    system: str

    @property
    def context_text(self) -> str:
        """Text of the trailing internal-context part (empty for plain turns)."""
        last = self.parts[-1] if self.parts else None
        if last is None or last.is_binary or not last.text.startswith(INTERNAL_CONTEXT_HEADER):
            return ""
        return last.text[len(INTERNAL_CONTEXT_HEADER):]


def _with_context(shared: Sequence[Part], context: str, system: str) -> PromptSpec:
    return PromptSpec(
        parts=tuple(shared) + (Part.from_text(INTERNAL_CONTEXT_HEADER + context),),
        system=system,
    )


def _refined_list(answers: Sequence[str]) -> str:
    return "\n\n".join(f'Refined {i + 1}:\n"{ans}"' for i, ans in enumerate(answers))


# ── Stage builders ──────────────────────────────────────────────────────

def initial(shared: Sequence[Part], units: int) -> list[PromptSpec]:
    spec = PromptSpec(parts=tuple(shared), system=INITIAL_SYSTEM_INSTRUCTION)
    return [spec] * units


def elaborate(shared: Sequence[Part], outputs: Sequence[str]) -> list[PromptSpec]:
    return [
        _with_context(
            shared,
            f"Here was the initial response:\n\n---INITIAL---\n{answer}\n\n"
            "Expand this response with the missing details, examples and edge cases, "
            "then provide a more complete response to the original query.",
            ELABORATION_SYSTEM_INSTRUCTION,
        )
        for answer in outputs
    ]


def refine_peers(outputs: Sequence[str], index: int) -> list[str]:
    """All outputs except ``index``, in index order."""
    return [ans for i, ans in enumerate(outputs) if i != index]


def refine(shared: Sequence[Part], outputs: Sequence[str]) -> list[PromptSpec]:
    specs = []
    for index, current in enumerate(outputs):
        peers = "\n".join(
            f'{i + 1}. "{ans}"' for i, ans in enumerate(refine_peers(outputs, index))
        )
        context = (
            f'The response I\'m working with is: "{current}". '
            f"The other agents responded with:\n{peers}\n\n"
            "Based on this context, critically re-evaluate and provide a new, improved "
            "response to the original query."
        )
        specs.append(_with_context(shared, context, REFINEMENT_SYSTEM_INSTRUCTION))
    return specs


def critique_target(index: int, units: int) -> int:
    """Index of the output that unit ``index`` critiques."""
    return (index + 1) % units


def critique_source(index: int, units: int) -> int:
    """Index of the unit whose critique is about unit ``index``'s output."""
    return (index - 1 + units) % units


def critique(shared: Sequence[Part], query: str, outputs: Sequence[str]) -> list[PromptSpec]:
    n = len(outputs)
    return [
        _with_context(
            shared,
            f'The user\'s query was: "{query}". Here is the response to critique:\n\n'
            f"---RESPONSE---\n{outputs[critique_target(i, n)]}",
            CRITIQUE_SYSTEM_INSTRUCTION,
        )
        for i in range(n)
    ]


def revise(
    shared: Sequence[Part], outputs: Sequence[str], critiques: Sequence[str]
) -> list[PromptSpec]:
    n = len(outputs)
    if len(critiques) != n:
        raise ValueError(f"{len(critiques)} critiques for {n} outputs")
    return [
        _with_context(
            shared,
            f"Here was your original response:\n\n---ORIGINAL---\n{original}\n\n"
            f"Here is a critique from a peer:\n\n---CRITIQUE---\n{critiques[critique_source(i, n)]}\n\n"
            "Based on the critique, provide an improved response to the original query.",
            REVISION_SYSTEM_INSTRUCTION,
        )
        for i, original in enumerate(outputs)
    ]


def synthesize(shared: Sequence[Part], outputs: Sequence[str]) -> list[PromptSpec]:
    context = (
        f"Here are the {len(outputs)} refined responses. Synthesize them into the best "
        "single, final answer.\n\n" + _refined_list(outputs)
    )
    return [_with_context(shared, context, SYNTHESIZER_SYSTEM_INSTRUCTION)]


def partition(outputs: Sequence[str], groups: int) -> list[list[str]]:
    """Split into ``groups`` contiguous, disjoint, equal-sized slices."""
    if groups < 1 or len(outputs) % groups:
        raise ValueError(f"Cannot split {len(outputs)} outputs into {groups} equal groups")
    size = len(outputs) // groups
    return [list(outputs[g * size:(g + 1) * size]) for g in range(groups)]


def parallel_synthesize(
    shared: Sequence[Part], outputs: Sequence[str], groups: int = 2
) -> list[PromptSpec]:
    specs = []
    for group in partition(outputs, groups):
        context = (
            f"Here are {len(group)} refined responses. Synthesize them into the best single, "
            "cohesive answer.\n\n" + _refined_list(group)
        )
        specs.append(_with_context(shared, context, SYNTHESIZER_SYSTEM_INSTRUCTION))
    return specs


def final_synthesize(shared: Sequence[Part], merged: Sequence[str]) -> list[PromptSpec]:
    sections = "\n\n".join(
        f"---SYNTHESIZED RESPONSE {i + 1}---\n{text}" for i, text in enumerate(merged)
    )
    context = (
        f"Here are {len(merged)} synthesized responses from different agent groups. Your task "
        "is to analyze, compare, and merge the best elements from each to create a single, "
        "master response that is comprehensive and polished.\n\n" + sections
    )
    return [_with_context(shared, context, SYNTHESIZER_SYSTEM_INSTRUCTION)]


def review(shared: Sequence[Part], query: str, text: str) -> list[PromptSpec]:
    context = (
        "Perform a final quality review on the following response. Check for clarity, "
        "coherence, grammar, and tone. Make only minor edits to polish the text. "
        f'The user\'s original query was: "{query}".\n\n'
        f"---RESPONSE TO REVIEW---\n{text}"
    )
    return [_with_context(shared, context, FINAL_REVIEW_SYSTEM_INSTRUCTION)]


def repair_request(language: str, code: str, diagnostic: str) -> PromptSpec:
    """Text-only correction turn; the diagnostic rides in the system instruction."""
    return PromptSpec(
        parts=(Part.from_text(f"Correct the following code:\n\n```{language}\n{code}\n```"),),
        system=CORRECTION_SYSTEM_TEMPLATE.format(diagnostic=diagnostic),
    )
