"""Prompt management - templates and prompt assembly."""

from sprintplan.prompts.builder import build_spec_prompt, conventions_hint, sanitize_for_prompt
from sprintplan.prompts.templates import SPEC_PROMPT, PromptTemplate

__all__ = [
    "PromptTemplate",
    "SPEC_PROMPT",
    "build_spec_prompt",
    "conventions_hint",
    "sanitize_for_prompt",
]
