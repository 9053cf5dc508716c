"""Utility helpers."""

from .log import configure_logging
from .response_parser import (
    extract_json_object,
    extract_numbered_prompts,
    parse_analysis_response,
)

__all__ = [
    "configure_logging",
    "extract_json_object",
    "extract_numbered_prompts",
    "parse_analysis_response",
]
