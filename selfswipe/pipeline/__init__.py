"""Session orchestration."""

from .swipe_controller import SwipeController

__all__ = ["SwipeController"]
