"""Configuration management for the SelfSwipe generation engine."""

from pathlib import Path
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class GeminiConfig(BaseModel):
    """Gemini model selection."""
    text_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"
    temperature: float | None = None  # None = provider default


class RetryConfig(BaseModel):
    """Backoff for transient provider failures."""
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=2.0, ge=0.0)  # seconds, doubles per attempt


class GenerationConfig(BaseModel):
    """Session pacing settings."""
    prompt_count: int = Field(default=10, ge=1)
    max_images: int = Field(default=20, ge=1)
    lookahead: int = Field(default=2, ge=0)
    more_count: int = Field(default=5, ge=1)
    synthesis_timeout: float = Field(default=60.0, gt=0.0)


class StorageConfig(BaseModel):
    """Where generated images and session history live."""
    output_dir: Path = Path("output/generated")
    upload_dir: Path = Path("output/uploads")
    sessions_file: Path = Path("output/sessions.json")
    inline_images: bool = False  # True = return data: URIs instead of files
    max_upload_bytes: int = 5 * 1024 * 1024


class SwipeConfig(BaseSettings):
    """Main engine configuration."""

    # Sub-configs
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Gemini credentials (loaded from .env)
    gemini_api_key: str | None = None

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = ""
        env_nested_delimiter = "__"
        extra = "ignore"


def load_config() -> SwipeConfig:
    """Load configuration from environment and defaults."""
    return SwipeConfig()
