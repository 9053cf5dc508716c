"""Provider, storage and persistence services."""

from .gemini_client import GeminiClient, classify_error
from .image_store import EncodedImage, ImageStore
from .image_synthesizer import ImageSynthesizer
from .retry import RetryPolicy
from .session_store import SessionStore

__all__ = [
    "GeminiClient",
    "classify_error",
    "EncodedImage",
    "ImageStore",
    "ImageSynthesizer",
    "RetryPolicy",
    "SessionStore",
]
