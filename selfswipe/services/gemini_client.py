"""Async Gemini client for portrait analysis and image editing."""

import asyncio
import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from ..config import GeminiConfig
from ..exceptions import (
    ConfigurationError,
    FatalProviderError,
    ProviderError,
    TransientProviderError,
)
from .image_store import EncodedImage


logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}

TRANSIENT_MARKERS = (
    "503",
    "429",
    "overloaded",
    "quota",
    "rate limit",
    "resource_exhausted",
    "resource exhausted",
    "unavailable",
    "timeout",
    "timed out",
)


def classify_error(exc: BaseException) -> ProviderError:
    """Map an SDK/transport exception onto the transient/fatal taxonomy."""
    if isinstance(exc, ProviderError):
        return exc

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException, httpx.TransportError)):
        return TransientProviderError(f"{type(exc).__name__}: {exc}")

    code = getattr(exc, "code", None)
    if isinstance(code, int) and code in TRANSIENT_STATUS_CODES:
        return TransientProviderError(f"{code}: {exc}")

    message = str(exc).lower()
    if any(marker in message for marker in TRANSIENT_MARKERS):
        return TransientProviderError(str(exc))

    return FatalProviderError(str(exc) or type(exc).__name__)


def extract_text(response: genai_types.GenerateContentResponse) -> str:
    """Concatenate every text part of every candidate."""
    texts: list[str] = []
    for candidate in response.candidates or []:
        content = getattr(candidate, "content", None)
        if not content or not getattr(content, "parts", None):
            continue
        for part in content.parts:
            text = getattr(part, "text", None)
            if text:
                texts.append(text)
    return "\n".join(texts)


class GeminiClient:
    """Thin async wrapper around ``google.genai`` that classifies errors."""

    def __init__(self, config: GeminiConfig, api_key: str | None):
        self.config = config
        self.api_key = api_key
        self._client: genai.Client | None = None

    @property
    def client(self) -> genai.Client:
        """Get or create the SDK client."""
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError(
                    "GEMINI_API_KEY was not found. Set it in your .env file before running."
                )
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _user_content(self, image: EncodedImage, instruction: str) -> genai_types.Content:
        return genai_types.Content(
            role="user",
            parts=[
                genai_types.Part(
                    inline_data=genai_types.Blob(mime_type=image.mime_type, data=image.data)
                ),
                genai_types.Part(text=instruction),
            ],
        )

    async def _generate(
        self,
        model: str,
        contents: list[genai_types.Content],
        config: genai_types.GenerateContentConfig,
    ) -> genai_types.GenerateContentResponse:
        client = self.client  # ConfigurationError is not a provider failure
        try:
            return await client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as exc:
            raise classify_error(exc) from exc
        except (asyncio.TimeoutError, httpx.HTTPError) as exc:
            raise classify_error(exc) from exc

    async def analyze(self, image: EncodedImage, instruction: str) -> str:
        """Send the portrait with an instruction and return the text answer."""
        response = await self._generate(
            self.config.text_model,
            [self._user_content(image, instruction)],
            genai_types.GenerateContentConfig(
                candidate_count=1,
                temperature=self.config.temperature,
            ),
        )
        text = extract_text(response)
        if not text:
            raise FatalProviderError("Gemini returned an empty analysis response")
        return text

    async def edit_image(
        self,
        image: EncodedImage,
        prompt: str,
    ) -> genai_types.GenerateContentResponse:
        """Ask the image model for one edit of ``image`` and return the raw response."""
        return await self._generate(
            self.config.image_model,
            [self._user_content(image, prompt)],
            genai_types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                candidate_count=1,
                temperature=self.config.temperature,
            ),
        )
