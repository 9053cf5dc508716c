"""Image synthesis adapter: one provider edit per prompt, always from the original."""

import asyncio
import logging
import time
from typing import Any, Callable

from ..config import GenerationConfig
from ..exceptions import (
    NoImageInResponseError,
    ProviderError,
    TransientProviderError,
)
from ..models import GenerationProgress, SwipeImage
from .gemini_client import GeminiClient, extract_text
from .image_store import EncodedImage, ImageStore
from .retry import RetryPolicy


logger = logging.getLogger(__name__)

ProgressSink = Callable[[GenerationProgress], None]

BLOCKED_FINISH_REASONS = {
    "SAFETY",
    "PROHIBITED_CONTENT",
    "BLOCKLIST",
    "SPII",
    "IMAGE_SAFETY",
    "IMAGE_PROHIBITED_CONTENT",
    "RECITATION",
}


def _enum_name(value: Any) -> str:
    return str(getattr(value, "name", value) or "").upper()


def first_inline_image(response: Any) -> EncodedImage:
    """Return the first inline image part of a response.

    Text parts and any later image parts are ignored.

    Raises:
        NoImageInResponseError: when no part carries image data.
    """
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        if not content or not getattr(content, "parts", None):
            continue

        for part in content.parts:
            inline = getattr(part, "inline_data", None)
            if not inline or not getattr(inline, "data", None):
                continue
            mime_type = getattr(inline, "mime_type", None) or "image/png"
            if not mime_type.startswith("image/"):
                continue
            return EncodedImage(data=inline.data, mime_type=mime_type)

    reason = "no_image"
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        reason = "blocked"
    for candidate in getattr(response, "candidates", None) or []:
        if _enum_name(getattr(candidate, "finish_reason", None)) in BLOCKED_FINISH_REASONS:
            reason = "blocked"

    text = extract_text(response) if getattr(response, "candidates", None) else ""
    raise NoImageInResponseError(
        "Gemini response did not include any inline image data",
        reason=reason,
        text=text,
    )


class ImageSynthesizer:
    """Generates swipe images by editing the original photo one prompt at a time."""

    def __init__(
        self,
        client: GeminiClient,
        image_store: ImageStore,
        config: GenerationConfig,
        retry_policy: RetryPolicy | None = None,
    ):
        self.client = client
        self.image_store = image_store
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy()
        self._source_cache: tuple[str, EncodedImage] | None = None

    async def _load_original(self, original_ref: str) -> EncodedImage:
        """Encode the original once and reuse it for every prompt against it."""
        if self._source_cache is not None and self._source_cache[0] == original_ref:
            return self._source_cache[1]
        image = await self.image_store.read(original_ref)
        self._source_cache = (original_ref, image)
        return image

    async def _request_once(self, source: EncodedImage, prompt: str) -> EncodedImage:
        timeout = self.config.synthesis_timeout
        try:
            response = await asyncio.wait_for(
                self.client.edit_image(source, prompt),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TransientProviderError(
                f"Image generation timeout after {timeout:g} seconds"
            ) from exc
        return first_inline_image(response)

    async def synthesize(self, original_ref: str, prompt: str) -> SwipeImage:
        """Produce one variation for ``prompt``.

        Transient failures are retried by the policy; everything else,
        including a response without an image, propagates to the caller.
        """
        source = await self._load_original(original_ref)

        start = time.monotonic()
        generated = await self.retry_policy.run(
            lambda: self._request_once(source, prompt),
            label="image generation",
        )
        logger.info("⏱️ Image generated in %.1fs", time.monotonic() - start)

        uri = self.image_store.save_generated(generated.data, generated.mime_type)
        return SwipeImage(uri=uri, prompt=prompt)

    async def synthesize_batch(
        self,
        original_ref: str,
        prompts: list[str],
        on_progress: ProgressSink | None = None,
    ) -> list[SwipeImage]:
        """Generate images for ``prompts`` sequentially, skipping failures.

        Returns between 0 and ``len(prompts)`` images in prompt order; callers
        must not assume one image per prompt.
        """
        total = len(prompts)
        images: list[SwipeImage] = []
        logger.info("🎨 Starting image generation for %d prompts", total)

        for index, prompt in enumerate(prompts, start=1):
            logger.info("🎯 Generating image %d/%d", index, total)
            image = await self.try_synthesize(original_ref, prompt)
            if image is not None:
                images.append(image)

            if on_progress is not None:
                on_progress(GenerationProgress(
                    stage="generating",
                    percent=round(index / total * 100),
                    message=f"Generated {index} of {total} images...",
                ))

        logger.info("🎉 Image generation complete! Generated %d/%d images", len(images), total)
        return images

    async def try_synthesize(self, original_ref: str, prompt: str) -> SwipeImage | None:
        """Like ``synthesize`` but logs and returns None when the prompt is skipped."""
        try:
            return await self.synthesize(original_ref, prompt)
        except NoImageInResponseError as exc:
            logger.warning(
                "⚠️ No image data in response (%s), skipping prompt: %.80s | text: %.200s",
                exc.reason, prompt, exc.text,
            )
        except ProviderError as exc:
            logger.error("❌ Skipping prompt after provider error: %s", exc)
        except OSError as exc:
            logger.error("❌ Skipping prompt, generated image could not be saved: %s", exc)
        return None
