"""Style Prompt Agent - analyzes a portrait and writes image-editing prompts."""

import logging
from typing import Callable

from ..exceptions import AnalysisError, TransientProviderError
from ..models import GenerationProgress, PromptPlan, VariationKind
from ..services.gemini_client import GeminiClient
from ..services.image_store import ImageStore
from ..services.retry import RetryPolicy
from ..utils.response_parser import parse_analysis_response


logger = logging.getLogger(__name__)

ProgressSink = Callable[[GenerationProgress], None]


ANALYSIS_SECTION = """First, analyze the person in the photo. Focus on features that matter for generating consistent variations:
- gender (male/female/other)
- ageRange (e.g., "20-30", "30-40")
- hairColor (e.g., "blonde", "brown", "black", "red", "gray")
- hairLength ("short", "medium", "long")
- hairStyle (e.g., "straight", "curly", "wavy", "pixie cut", "bob")
- faceShape (e.g., "oval", "round", "square", "heart", "diamond")
- skinTone (e.g., "fair", "light", "medium", "olive", "tan", "dark")
- eyeColor (e.g., "blue", "brown", "green", "hazel")
- bodyType (e.g., "slim", "athletic", "average", "curvy")
- clothingStyle (e.g., "casual", "formal", "bohemian", "preppy", "edgy")
- overallStyle (e.g., "classic", "modern", "vintage", "minimalist", "eclectic")
Use "unknown" for anything you cannot determine."""


HAIRSTYLE_SECTION = """Then write {count} diverse hairstyle editing prompts. They will each be sent, together with the ORIGINAL photo, to an image-editing model that must change ONLY the hair.

Every prompt must:
1. Change ONLY the hair; keep facial features, skin tone, eyes, clothing, background and composition exactly the same
2. Describe a distinct hairstyle (short, long, curly, straight, braided, updo, etc.), suited to the person's age and face shape
3. Include specific styling details and texture descriptions, in professional photography language

Format each prompt as: "Using the provided image, change only the hair to [specific hairstyle description]. Keep everything else in the image exactly the same, preserving the original facial features, skin tone, eye color, facial structure, and composition. The person's identity and appearance should remain completely unchanged except for the hairstyle.\""""


OUTFIT_SECTION = """Then write {count} diverse outfit editing prompts. They will each be sent, together with the ORIGINAL photo, to an image-editing model that must change ONLY the clothing.

Every prompt must:
1. Change ONLY the clothing; keep facial features, skin tone, hair, background and composition exactly the same
2. Describe a distinct outfit style (casual, formal, bohemian, edgy, professional, etc.), suited to the person's age and body type
3. Include specific garments, colors and accessories, in professional photography language

Format each prompt as: "Using the provided image, change only the clothing to [specific outfit description]. Keep everything else in the image exactly the same, preserving the original facial features, skin tone, hair, facial structure, and composition. The person's identity and appearance should remain completely unchanged except for the outfit.\""""


OUTPUT_SECTION = """Return ONLY a JSON object, no explanation and no markdown:
{{
  "analysis": {{"gender": "...", "ageRange": "...", "hairColor": "...", "hairLength": "...", "hairStyle": "...", "faceShape": "...", "skinTone": "...", "eyeColor": "...", "bodyType": "...", "clothingStyle": "...", "overallStyle": "..."}},
  "prompts": ["prompt 1", "prompt 2", ...]
}}
The "prompts" array must contain exactly {count} distinct strings."""


def build_instruction(variation_kind: VariationKind, count: int) -> str:
    """Assemble the combined analysis-and-prompts request text."""
    section = HAIRSTYLE_SECTION if variation_kind is VariationKind.HAIRSTYLE else OUTFIT_SECTION
    return "\n\n".join([
        "You are a professional portrait analyst and image-editing prompt expert.",
        ANALYSIS_SECTION,
        section.format(count=count),
        OUTPUT_SECTION.format(count=count),
    ])


class StylePromptAgent:
    """Turns one portrait into an analysis plus ``count`` editing prompts.

    A single provider call produces both. Transient failures are retried with
    exponential backoff; anything else fails immediately.
    """

    def __init__(
        self,
        client: GeminiClient,
        image_store: ImageStore,
        retry_policy: RetryPolicy | None = None,
    ):
        self.client = client
        self.image_store = image_store
        self.retry_policy = retry_policy or RetryPolicy(backoff_after_final=True)

    async def analyze_and_generate_prompts(
        self,
        image_ref: str,
        variation_kind: VariationKind,
        count: int = 10,
        on_progress: ProgressSink | None = None,
    ) -> PromptPlan:
        """Analyze ``image_ref`` and return prompts for ``variation_kind``.

        Args:
            image_ref: Path, file://, data: or http(s) reference to the portrait
            variation_kind: Whether prompts edit the hairstyle or the outfit
            count: Maximum number of prompts to request
            on_progress: Optional sink for progress snapshots

        Raises:
            AnalysisError: when transient failures exhaust every retry
            FatalProviderError: on non-retryable provider errors
            MalformedResponseError: when no prompt can be recovered
        """
        if count < 1:
            raise ValueError("count must be a positive integer")

        if on_progress is not None:
            on_progress(GenerationProgress(
                stage="analyzing", percent=5, message="Analyzing your photo...",
            ))

        image = await self.image_store.read(image_ref)
        instruction = build_instruction(variation_kind, count)

        logger.info("🔍 Requesting analysis and %d %s prompts", count, variation_kind.value)
        try:
            text = await self.retry_policy.run(
                lambda: self.client.analyze(image, instruction),
                label="image analysis",
            )
        except TransientProviderError as exc:
            raise AnalysisError(
                f"Failed to analyze image after {self.retry_policy.max_attempts} attempts. "
                f"Last error: {exc}"
            ) from exc

        if on_progress is not None:
            on_progress(GenerationProgress(
                stage="prompting", percent=15, message="Writing style ideas...",
            ))

        logger.debug("📄 Raw analysis response: %.500s", text)
        plan = parse_analysis_response(text, count)
        logger.info("✨ Received %d prompts (requested %d)", len(plan.prompts), count)
        return plan
