"""
Prompt assembly for the spec and decomposition stages.

Knowledge blocks are folded in verbatim; user-supplied feature text and
context are sanitized so they cannot break out of the prompt structure.
"""

from sprintplan.core.collaborators import KnowledgeContext
from sprintplan.prompts.templates import DECOMPOSE_RULES, SPEC_PROMPT


def sanitize_for_prompt(text: str) -> str:
    """
    Neutralize markup in user-supplied text.

    Escapes angle brackets, turns backticks into single quotes and
    flattens newlines.

    Example:
        >>> sanitize_for_prompt("<b>`x`</b>\\n")
        "&lt;b&gt;'x'&lt;/b&gt;"
    """
    return (
        text.replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace("`", "'")
        .replace("\n", " ")
        .strip()
    )


def build_spec_prompt(
    feature: str,
    context: str | None = None,
    knowledge: KnowledgeContext | None = None,
) -> str:
    """Build the prompt for the spec generator."""
    knowledge = knowledge or KnowledgeContext()
    sections = [s for s in (knowledge.patterns, knowledge.lessons, knowledge.deferred) if s]

    return SPEC_PROMPT.format(
        feature=sanitize_for_prompt(feature),
        context_section=(
            f"\n\nAdditional context: {sanitize_for_prompt(context)}" if context else ""
        ),
        knowledge_section=(
            "\n\nProject knowledge:\n" + "\n\n".join(sections) if sections else ""
        ),
    )


def conventions_hint(
    knowledge: KnowledgeContext | None = None,
    parallel: bool = False,
) -> str:
    """Decomposition rules plus known patterns and lessons."""
    knowledge = knowledge or KnowledgeContext()
    parts = [DECOMPOSE_RULES]
    parts.extend(s for s in (knowledge.patterns, knowledge.lessons) if s)
    if parallel:
        parts.append("Prefer parallel-friendly decomposition where possible.")
    return "\n\n".join(parts)

