"""
Tests for configuration module.
"""

from pathlib import Path

import pytest

from clauseguard.config import DEFAULT_MODELS, Settings, get_settings, reset_settings
from clauseguard.utils.errors import ConfigurationError

ENV_VARS = (
    "LOG_LEVEL",
    "DEV_MODE",
    "LOG_FILE",
    "LLM_PROVIDER",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "LLM_MODELS",
    "LLM_TEMPERATURE",
    "LLM_MAX_TOKENS",
    "ANALYSIS_TIMEOUT_SECONDS",
    "MAX_CONTRACT_CHARS",
    "MAX_UPLOAD_SIZE_BYTES",
    "WORDS_PER_PAGE",
    "STORAGE_DIR",
    "DATABASE_URL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    """Test the Settings configuration class."""

    def test_default_settings(self, clean_env):
        settings = Settings()

        assert settings.log_level == "INFO"
        assert settings.llm_provider == "anthropic"
        assert settings.analysis_timeout_seconds == 45.0
        assert settings.max_upload_size_bytes == 10 * 1024 * 1024
        assert settings.words_per_page == 500
        assert settings.max_contract_chars == 100_000
        assert settings.database_url is None
        assert settings.get_log_file_path() is None

    def test_settings_from_env(self, clean_env):
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("ANALYSIS_TIMEOUT_SECONDS", "12.5")
        clean_env.setenv("MAX_UPLOAD_SIZE_BYTES", "2048")
        clean_env.setenv("STORAGE_DIR", "/tmp/contracts")
        clean_env.setenv("DATABASE_URL", "postgresql://localhost/clauseguard")
        clean_env.setenv("DEV_MODE", "true")
        clean_env.setenv("LOG_FILE", "logs/app.log")

        settings = Settings()

        assert settings.log_level == "DEBUG"
        assert settings.analysis_timeout_seconds == 12.5
        assert settings.max_upload_size_bytes == 2048
        assert settings.storage_dir == Path("/tmp/contracts")
        assert settings.database_url == "postgresql://localhost/clauseguard"
        assert settings.dev_mode is True
        assert settings.get_log_file_path() == Path("logs/app.log")

    def test_invalid_integer(self, clean_env):
        clean_env.setenv("MAX_UPLOAD_SIZE_BYTES", "ten megabytes")

        with pytest.raises(ConfigurationError, match="MAX_UPLOAD_SIZE_BYTES must be an integer"):
            Settings()

    def test_invalid_float(self, clean_env):
        clean_env.setenv("LLM_TEMPERATURE", "warm")

        with pytest.raises(ConfigurationError, match="LLM_TEMPERATURE must be a number"):
            Settings()

    def test_invalid_provider(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", "mystery")

        with pytest.raises(ConfigurationError, match="LLM_PROVIDER"):
            Settings()

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_timeout_must_be_positive(self, clean_env, value):
        clean_env.setenv("ANALYSIS_TIMEOUT_SECONDS", value)

        with pytest.raises(ConfigurationError):
            Settings()

    def test_words_per_page_minimum(self, clean_env):
        clean_env.setenv("WORDS_PER_PAGE", "0")

        with pytest.raises(ConfigurationError):
            Settings()


class TestModelSettings:
    def test_default_candidates_per_provider(self, clean_env):
        assert Settings().model_candidates == DEFAULT_MODELS["anthropic"]

        clean_env.setenv("LLM_PROVIDER", "openai")
        assert Settings().model_candidates == DEFAULT_MODELS["openai"]

    def test_candidates_override(self, clean_env):
        clean_env.setenv("LLM_MODELS", "model-a, model-b,,")

        assert Settings().model_candidates == ["model-a", "model-b"]

    def test_api_key_follows_provider(self, clean_env):
        clean_env.setenv("ANTHROPIC_API_KEY", "ant-key")
        clean_env.setenv("OPENAI_API_KEY", "oai-key")

        assert Settings().llm_api_key == "ant-key"
        clean_env.setenv("LLM_PROVIDER", "OpenAI")
        assert Settings().llm_api_key == "oai-key"


class TestGetSettings:
    def test_singleton_and_reset(self, clean_env):
        reset_settings()
        first = get_settings()

        assert get_settings() is first

        reset_settings()
        assert get_settings() is not first
        reset_settings()
