# Test fixtures and configuration
import os
import pytest
import sys
from pathlib import Path
from types import SimpleNamespace

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from selfswipe.config import GenerationConfig, RetryConfig, StorageConfig, SwipeConfig
from selfswipe.models import ImageAnalysis, PromptPlan


def pytest_collection_modifyitems(config, items):
    if os.getenv("RUN_AI_TESTS") == "1":
        return

    skip_marker = pytest.mark.skip(reason="Set RUN_AI_TESTS=1 to run AI integration tests.")
    for item in items:
        if "ai" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def minimal_png_bytes():
    """Minimal valid PNG image bytes."""
    return bytes([
        0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A,  # PNG signature
        0x00, 0x00, 0x00, 0x0D, 0x49, 0x48, 0x44, 0x52,  # IHDR chunk
        0x00, 0x00, 0x00, 0x01, 0x00, 0x00, 0x00, 0x01,  # 1x1 dimensions
        0x08, 0x02, 0x00, 0x00, 0x00, 0x90, 0x77, 0x53,
        0xDE, 0x00, 0x00, 0x00, 0x0C, 0x49, 0x44, 0x41,  # IDAT chunk
        0x54, 0x08, 0xD7, 0x63, 0xF8, 0xCF, 0xC0, 0x00,
        0x00, 0x00, 0x03, 0x00, 0x01, 0x00, 0x05, 0xFE,
        0xD4, 0xAA, 0x00, 0x00, 0x00, 0x00, 0x49, 0x45,  # IEND chunk
        0x4E, 0x44, 0xAE, 0x42, 0x60, 0x82
    ])


@pytest.fixture
def temp_image_file(tmp_path, minimal_png_bytes):
    """Create a temporary PNG file."""
    img_path = tmp_path / "test_image.png"
    img_path.write_bytes(minimal_png_bytes)
    return img_path


@pytest.fixture
def storage_config(tmp_path):
    """Storage rooted in a temporary directory."""
    return StorageConfig(
        output_dir=tmp_path / "generated",
        upload_dir=tmp_path / "uploads",
        sessions_file=tmp_path / "sessions.json",
    )


@pytest.fixture
def swipe_config(storage_config):
    """Engine config with instant retries and no API key."""
    return SwipeConfig(
        gemini_api_key=None,
        retry=RetryConfig(max_attempts=3, base_delay=0.0),
        generation=GenerationConfig(),
        storage=storage_config,
    )


@pytest.fixture
def sample_analysis():
    return ImageAnalysis(
        gender="female",
        ageRange="20-30",
        hairColor="brown",
        hairLength="long",
        hairStyle="wavy",
        faceShape="oval",
        skinTone="medium",
        eyeColor="hazel",
        bodyType="average",
        clothingStyle="casual",
        overallStyle="modern",
    )


@pytest.fixture
def make_plan(sample_analysis):
    """Build a PromptPlan with ``count`` numbered hairstyle prompts."""
    def _make(count=10, prefix="style"):
        prompts = [
            f"Using the provided image, change only the hair to {prefix} {i}."
            for i in range(1, count + 1)
        ]
        return PromptPlan(analysis=sample_analysis, prompts=prompts)
    return _make


def image_response(data=b"\x89PNG\r\n\x1a\nfake", mime_type="image/png", text=None):
    """Shape of a google-genai response carrying one inline image."""
    parts = []
    if text:
        parts.append(SimpleNamespace(text=text, inline_data=None))
    parts.append(SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type)))
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts), finish_reason="STOP")],
        prompt_feedback=None,
    )


def text_response(text, finish_reason="STOP", block_reason=None):
    """Shape of a google-genai response with only text."""
    return SimpleNamespace(
        candidates=[SimpleNamespace(
            content=SimpleNamespace(parts=[SimpleNamespace(text=text, inline_data=None)]),
            finish_reason=finish_reason,
        )],
        prompt_feedback=SimpleNamespace(block_reason=block_reason) if block_reason else None,
        text=text,
    )


@pytest.fixture
def image_response_factory():
    return image_response


@pytest.fixture
def text_response_factory():
    return text_response
