"""Tests for settings loading and logging setup."""

import logging
from pathlib import Path

from selfswipe.config import SwipeConfig, load_config
from selfswipe.utils import configure_logging


class TestSwipeConfig:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        config = SwipeConfig(_env_file=None)

        assert config.gemini.text_model == "gemini-2.5-flash"
        assert config.gemini.image_model == "gemini-2.5-flash-image"
        assert config.retry.max_attempts == 3
        assert config.retry.base_delay == 2.0
        assert config.generation.prompt_count == 10
        assert config.generation.max_images == 20
        assert config.generation.lookahead == 2
        assert config.generation.more_count == 5
        assert config.generation.synthesis_timeout == 60.0
        assert config.gemini_api_key is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")
        monkeypatch.setenv("GENERATION__PROMPT_COUNT", "6")
        monkeypatch.setenv("STORAGE__INLINE_IMAGES", "true")
        monkeypatch.setenv("RETRY__MAX_ATTEMPTS", "5")

        config = load_config()

        assert config.gemini_api_key == "from-env"
        assert config.generation.prompt_count == 6
        assert config.storage.inline_images is True
        assert config.retry.max_attempts == 5

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("GEMINI_API_KEY=from-file\nLOG_LEVEL=DEBUG\nUNRELATED=1\n")

        config = SwipeConfig(_env_file=env_file)

        assert config.gemini_api_key == "from-file"
        assert config.log_level == "DEBUG"

    def test_storage_paths(self):
        config = SwipeConfig(_env_file=None)

        assert isinstance(config.storage.output_dir, Path)
        assert config.storage.sessions_file.suffix == ".json"


class TestConfigureLogging:

    def test_quiets_http_loggers(self):
        configure_logging("debug")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("google_genai").level == logging.WARNING
