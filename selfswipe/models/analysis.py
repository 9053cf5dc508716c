"""Portrait analysis models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


UNKNOWN = "unknown"


class VariationKind(str, Enum):
    """Which part of the portrait the edits change."""

    HAIRSTYLE = "hairstyle"
    OUTFIT = "outfit"


class ImageAnalysis(BaseModel):
    """Structured description of the person in the original photo."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    gender: str = Field(default=UNKNOWN, description="e.g., 'female', 'male'")
    age_range: str = Field(default=UNKNOWN, alias="ageRange", description="e.g., '20-30'")

    # Hair
    hair_color: str = Field(default=UNKNOWN, alias="hairColor")
    hair_length: str = Field(default=UNKNOWN, alias="hairLength", description="'short', 'medium', 'long'")
    hair_style: str = Field(default=UNKNOWN, alias="hairStyle", description="e.g., 'wavy', 'bob', 'pixie cut'")

    # Face and body
    face_shape: str = Field(default=UNKNOWN, alias="faceShape", description="e.g., 'oval', 'heart'")
    skin_tone: str = Field(default=UNKNOWN, alias="skinTone")
    eye_color: str = Field(default=UNKNOWN, alias="eyeColor")
    body_type: str = Field(default=UNKNOWN, alias="bodyType", description="e.g., 'slim', 'athletic'")

    # Style
    clothing_style: str = Field(default=UNKNOWN, alias="clothingStyle", description="e.g., 'casual', 'preppy'")
    overall_style: str = Field(default=UNKNOWN, alias="overallStyle", description="e.g., 'minimalist', 'vintage'")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return UNKNOWN
        text = str(value).strip()
        return text or UNKNOWN

    @classmethod
    def unknown(cls) -> "ImageAnalysis":
        """An analysis with every field left as 'unknown'."""
        return cls()

    @property
    def is_unknown(self) -> bool:
        return all(value == UNKNOWN for value in self.model_dump().values())


class PromptPlan(BaseModel):
    """Output of one analysis call: the analysis plus editing instructions."""

    analysis: ImageAnalysis
    prompts: list[str] = Field(default_factory=list)
    used_fallback: bool = False
