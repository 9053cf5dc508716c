"""Swipe session and generated image models."""

import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, computed_field

from .analysis import ImageAnalysis, VariationKind


_last_session_stamp = 0


def new_session_id() -> str:
    """Time-based session id, strictly increasing within the process."""
    global _last_session_stamp
    stamp = max(time.time_ns(), _last_session_stamp + 1)
    _last_session_stamp = stamp
    return str(stamp)


def new_image_id() -> str:
    return f"generated-{uuid.uuid4().hex[:12]}"


class SessionStatus(str, Enum):
    """Lifecycle of a swipe session."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    GENERATING = "generating"
    READY = "ready"
    COMPLETED = "completed"
    ERROR = "error"


class GenerationProgress(BaseModel):
    """Progress snapshot shown while the provider is working."""

    stage: Literal["analyzing", "prompting", "generating"]
    percent: int = Field(ge=0, le=100)
    message: str = ""


class SwipeImage(BaseModel):
    """One generated variation of the original photo."""

    id: str = Field(default_factory=new_image_id)
    uri: str
    prompt: str
    is_liked: bool = False
    swiped_at: datetime | None = None
    generated_at: datetime = Field(default_factory=datetime.now)

    @computed_field
    @property
    def is_swiped(self) -> bool:
        return self.swiped_at is not None

    def mark(self, liked: bool) -> None:
        """Record the swipe decision. Each image is decided exactly once."""
        if self.swiped_at is not None:
            raise ValueError(f"Image {self.id} was already swiped")
        self.is_liked = liked
        self.swiped_at = datetime.now()


class SwipeSession(BaseModel):
    """Complete state of one upload-to-swipe run."""

    id: str = Field(default_factory=new_session_id)
    user_id: str | None = None

    # Inputs
    original_image_ref: str
    uploaded_image_ref: str | None = None
    variation_kind: VariationKind

    # Analysis
    analysis: ImageAnalysis | None = None
    prompts: list[str] = Field(default_factory=list)
    next_prompt_index: int = 0

    # Swiping
    images: list[SwipeImage] = Field(default_factory=list)
    cursor: int = 0
    liked_images: list[SwipeImage] = Field(default_factory=list)

    # Status
    status: SessionStatus = SessionStatus.INITIALIZING
    is_generating: bool = False
    progress: GenerationProgress | None = None
    error: str | None = None

    created_at: datetime = Field(default_factory=datetime.now)

    @computed_field
    @property
    def liked_count(self) -> int:
        return len(self.liked_images)

    @computed_field
    @property
    def remaining_count(self) -> int:
        """Images generated but not yet swiped."""
        return len(self.images) - self.cursor

    @property
    def current_image(self) -> SwipeImage | None:
        if self.cursor < len(self.images):
            return self.images[self.cursor]
        return None

    @property
    def has_pending_prompts(self) -> bool:
        return self.next_prompt_index < len(self.prompts)

    def set_prompts(self, analysis: ImageAnalysis, prompts: list[str]) -> None:
        """Attach the analysis and the initial prompt list. Allowed once."""
        if self.analysis is not None or self.prompts:
            raise ValueError(f"Session {self.id} already has prompts")
        self.analysis = analysis
        self.prompts = list(prompts)

    def reset_prompts(self) -> None:
        """Forget the analysis and prompts so initialization can run again."""
        if self.images:
            raise ValueError(f"Session {self.id} already has images")
        self.analysis = None
        self.prompts = []
        self.next_prompt_index = 0

    def extend_prompts(self, prompts: list[str]) -> None:
        """Queue further prompts so they are the next ones claimed.

        Still-pending prompts move behind them; consumed prompts keep their
        positions, so images stay in prompt order.
        """
        at = self.next_prompt_index
        self.prompts[at:at] = list(prompts)

    def claim_next_prompt(self) -> tuple[int, str] | None:
        """Consume the next unsynthesized prompt, or None when exhausted."""
        if not self.has_pending_prompts:
            return None
        index = self.next_prompt_index
        self.next_prompt_index += 1
        return index, self.prompts[index]

    def add_image(self, image: SwipeImage) -> SwipeImage:
        """Append a generated image, keeping images within the prompt budget."""
        if len(self.images) >= self.next_prompt_index:
            raise ValueError("Cannot add more images than consumed prompts")
        self.images.append(image)
        return image

    def record_swipe(self, liked: bool) -> SwipeImage | None:
        """Decide the image at the cursor and advance. None if nothing to swipe."""
        image = self.current_image
        if image is None:
            return None
        image.mark(liked)
        if liked:
            self.liked_images.append(image)
        self.cursor += 1
        return image


class SwipeState(BaseModel):
    """Everything the presentation layer observes."""

    current_session: SwipeSession | None = None
    sessions: list[SwipeSession] = Field(default_factory=list)

    @computed_field
    @property
    def status(self) -> SessionStatus:
        if self.current_session is None:
            return SessionStatus.IDLE
        return self.current_session.status
