"""Data models for the SelfSwipe engine."""

from .analysis import ImageAnalysis, PromptPlan, VariationKind
from .session import (
    GenerationProgress,
    SessionStatus,
    SwipeImage,
    SwipeSession,
    SwipeState,
)

__all__ = [
    "ImageAnalysis",
    "PromptPlan",
    "VariationKind",
    "GenerationProgress",
    "SessionStatus",
    "SwipeImage",
    "SwipeSession",
    "SwipeState",
]
