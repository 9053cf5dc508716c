"""LLM agents for the SelfSwipe engine."""

from .style_prompt_agent import StylePromptAgent, build_instruction

__all__ = [
    "StylePromptAgent",
    "build_instruction",
]
