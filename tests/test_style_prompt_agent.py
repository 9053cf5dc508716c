"""Tests for the Style Prompt Agent."""

import json
from unittest.mock import AsyncMock

import pytest

from selfswipe.agents import StylePromptAgent, build_instruction
from selfswipe.config import GeminiConfig
from selfswipe.exceptions import (
    AnalysisError,
    FatalProviderError,
    ImageReadError,
    MalformedResponseError,
    TransientProviderError,
)
from selfswipe.models import VariationKind
from selfswipe.services import GeminiClient, ImageStore, RetryPolicy


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def structured_text(count):
    return json.dumps({
        "analysis": {"gender": "female", "hairLength": "long", "faceShape": "oval"},
        "prompts": [
            f"Using the provided image, change only the hair to idea {i}." for i in range(1, count + 1)
        ],
    })


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def agent(storage_config, sleep):
    client = GeminiClient(GeminiConfig(), api_key="test-key")
    store = ImageStore(storage_config)
    policy = RetryPolicy(max_attempts=3, base_delay=2.0, backoff_after_final=True, sleep=sleep)
    return StylePromptAgent(client=client, image_store=store, retry_policy=policy)


class TestBuildInstruction:

    def test_hairstyle_instruction(self):
        text = build_instruction(VariationKind.HAIRSTYLE, 10)

        assert "10 diverse hairstyle" in text
        assert "change only the hair" in text
        assert "exactly 10 distinct strings" in text
        assert '"analysis"' in text

    def test_outfit_instruction(self):
        text = build_instruction(VariationKind.OUTFIT, 5)

        assert "5 diverse outfit" in text
        assert "change only the clothing" in text
        assert "hairstyle" not in text


class TestAnalyzeAndGeneratePrompts:

    @pytest.mark.asyncio
    async def test_returns_plan(self, agent, temp_image_file):
        agent.client.analyze = AsyncMock(return_value=structured_text(10))

        plan = await agent.analyze_and_generate_prompts(str(temp_image_file), VariationKind.HAIRSTYLE)

        assert len(plan.prompts) == 10
        assert plan.analysis.hair_length == "long"
        image, instruction = agent.client.analyze.call_args.args
        assert image.mime_type == "image/png"
        assert "hairstyle" in instruction

    @pytest.mark.asyncio
    async def test_reports_progress(self, agent, temp_image_file):
        agent.client.analyze = AsyncMock(return_value=structured_text(3))
        stages = []

        await agent.analyze_and_generate_prompts(
            str(temp_image_file), VariationKind.OUTFIT, count=3,
            on_progress=lambda progress: stages.append(progress.stage),
        )

        assert stages == ["analyzing", "prompting"]

    @pytest.mark.asyncio
    async def test_short_response_is_not_padded(self, agent, temp_image_file):
        agent.client.analyze = AsyncMock(return_value=structured_text(7))

        plan = await agent.analyze_and_generate_prompts(str(temp_image_file), VariationKind.HAIRSTYLE, count=10)

        assert len(plan.prompts) == 7

    @pytest.mark.asyncio
    async def test_retry_bound(self, agent, temp_image_file, sleep):
        """Persistent overload: three attempts, backoff 2s/4s/8s, then AnalysisError."""
        agent.client.analyze = AsyncMock(side_effect=TransientProviderError("503 overloaded"))

        with pytest.raises(AnalysisError) as exc_info:
            await agent.analyze_and_generate_prompts(str(temp_image_file), VariationKind.HAIRSTYLE)

        assert agent.client.analyze.await_count == 3
        assert sleep.delays == [2.0, 4.0, 8.0]
        assert "after 3 attempts" in str(exc_info.value)
        assert "503 overloaded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, agent, temp_image_file, sleep):
        agent.client.analyze = AsyncMock(side_effect=[
            TransientProviderError("429 quota"),
            structured_text(10),
        ])

        plan = await agent.analyze_and_generate_prompts(str(temp_image_file), VariationKind.HAIRSTYLE)

        assert len(plan.prompts) == 10
        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_fatal_error_is_not_retried(self, agent, temp_image_file, sleep):
        agent.client.analyze = AsyncMock(side_effect=FatalProviderError("API key not valid"))

        with pytest.raises(FatalProviderError):
            await agent.analyze_and_generate_prompts(str(temp_image_file), VariationKind.HAIRSTYLE)

        assert agent.client.analyze.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_malformed_response(self, agent, temp_image_file):
        agent.client.analyze = AsyncMock(return_value="I cannot help with that request.")

        with pytest.raises(MalformedResponseError):
            await agent.analyze_and_generate_prompts(str(temp_image_file), VariationKind.HAIRSTYLE)

    @pytest.mark.asyncio
    async def test_unreadable_image(self, agent, tmp_path):
        agent.client.analyze = AsyncMock()

        with pytest.raises(ImageReadError):
            await agent.analyze_and_generate_prompts(str(tmp_path / "missing.png"), VariationKind.HAIRSTYLE)
        agent.client.analyze.assert_not_called()

    @pytest.mark.asyncio
    async def test_count_must_be_positive(self, agent, temp_image_file):
        with pytest.raises(ValueError):
            await agent.analyze_and_generate_prompts(str(temp_image_file), VariationKind.HAIRSTYLE, count=0)


@pytest.mark.ai
@pytest.mark.asyncio
async def test_real_gemini_analysis(temp_image_file):
    """Calls the real API; needs GEMINI_API_KEY and RUN_AI_TESTS=1."""
    from selfswipe.config import load_config

    config = load_config()
    agent = StylePromptAgent(
        client=GeminiClient(config.gemini, config.gemini_api_key),
        image_store=ImageStore(config.storage),
    )

    plan = await agent.analyze_and_generate_prompts(str(temp_image_file), VariationKind.HAIRSTYLE, count=3)

    assert 1 <= len(plan.prompts) <= 3
