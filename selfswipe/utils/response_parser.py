"""Parse analysis-and-prompt responses returned by the text model."""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from ..exceptions import MalformedResponseError
from ..models import ImageAnalysis, PromptPlan


logger = logging.getLogger(__name__)

# "1. prompt", "2) prompt", "3 - prompt", "**4.** prompt"
NUMBERED_LINE = re.compile(r'^\s*(?:\*\*)?\d+\s*(?:[.):]|-)\s*(?:\*\*)?\s*(.+)$')

# Quotes and list markers the model likes to wrap prompts in
WRAPPING_CHARS = '"\'`“”‘’ '


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the JSON object between the first '{' and the last '}', if any."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        return None

    return data if isinstance(data, dict) else None


def clean_prompt(raw: Any) -> str:
    """Strip whitespace and wrapping quotes from a single prompt."""
    if not isinstance(raw, str):
        return ""
    return raw.strip().strip(WRAPPING_CHARS).strip()


def extract_numbered_prompts(text: str) -> list[str]:
    """Pull prompts out of numbered lines, ignoring everything else."""
    prompts = []
    for line in text.splitlines():
        match = NUMBERED_LINE.match(line)
        if not match:
            continue
        prompt = clean_prompt(match.group(1))
        if prompt:
            prompts.append(prompt)
    return prompts


def parse_structured_response(text: str, count: int) -> PromptPlan | None:
    """Parse the JSON form ``{"analysis": {...}, "prompts": [...]}``.

    Returns None when the payload is missing, malformed, or carries no prompt.
    """
    data = extract_json_object(text)
    if data is None:
        return None

    raw_analysis = data.get("analysis")
    raw_prompts = data.get("prompts")
    if not isinstance(raw_analysis, dict) or not isinstance(raw_prompts, list):
        return None

    try:
        analysis = ImageAnalysis.model_validate(raw_analysis)
    except ValidationError:
        return None

    prompts = [p for p in (clean_prompt(raw) for raw in raw_prompts) if p]
    if not prompts:
        return None

    return PromptPlan(analysis=analysis, prompts=prompts[:count])


def parse_analysis_response(text: str, count: int) -> PromptPlan:
    """Turn raw model text into a PromptPlan.

    Structured JSON is preferred. Otherwise numbered lines become the prompts
    and the analysis is left as all-"unknown". Prompts are truncated to
    ``count`` but never padded.

    Raises:
        MalformedResponseError: when no prompt can be recovered at all.
    """
    plan = parse_structured_response(text, count)
    if plan is not None:
        return plan

    prompts = extract_numbered_prompts(text)
    if not prompts:
        raise MalformedResponseError(
            f"Could not recover any prompt from the provider response: {text[:200]!r}"
        )

    logger.warning(
        "⚠️ Structured response unavailable, recovered %d prompt(s) from numbered lines",
        len(prompts),
    )
    return PromptPlan(
        analysis=ImageAnalysis.unknown(),
        prompts=prompts[:count],
        used_fallback=True,
    )
