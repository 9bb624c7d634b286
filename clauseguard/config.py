# Config
"""
Configuration for the ClauseGuard contract analysis service.

Values come from the environment (a local .env file is loaded first).
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from clauseguard.utils.errors import ConfigurationError

load_dotenv()

# Two capability-equivalent candidates per provider, tried in order
DEFAULT_MODELS = {
    "anthropic": ["claude-sonnet-4-5", "claude-3-7-sonnet-latest"],
    "openai": ["gpt-4o", "gpt-4o-mini"],
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    def __init__(self) -> None:
        # Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.dev_mode = _env_bool("DEV_MODE", False)
        self.log_file = os.getenv("LOG_FILE") or None

        # Language model
        self.llm_provider = os.getenv("LLM_PROVIDER", "anthropic").strip().lower()
        if self.llm_provider not in DEFAULT_MODELS:
            raise ConfigurationError(
                f"LLM_PROVIDER must be one of {sorted(DEFAULT_MODELS)}, got {self.llm_provider!r}"
            )
        self.anthropic_api_key = os.getenv("ANTHROPIC_API_KEY")
        self.openai_api_key = os.getenv("OPENAI_API_KEY")
        self.llm_models = _parse_list(os.getenv("LLM_MODELS"))
        self.llm_temperature = _env_float("LLM_TEMPERATURE", 0.2)
        self.llm_max_tokens = _env_int("LLM_MAX_TOKENS", 4000)

        # Analysis pipeline
        self.analysis_timeout_seconds = _env_float("ANALYSIS_TIMEOUT_SECONDS", 45.0)
        self.max_contract_chars = _env_int("MAX_CONTRACT_CHARS", 100_000)
        if self.analysis_timeout_seconds <= 0:
            raise ConfigurationError("ANALYSIS_TIMEOUT_SECONDS must be positive")

        # Uploads and extraction
        self.max_upload_size_bytes = _env_int("MAX_UPLOAD_SIZE_BYTES", 10 * 1024 * 1024)  # 10MB
        self.words_per_page = _env_int("WORDS_PER_PAGE", 500)
        if self.words_per_page < 1:
            raise ConfigurationError("WORDS_PER_PAGE must be at least 1")

        # Storage
        self.storage_dir = Path(os.getenv("STORAGE_DIR", ".clauseguard/uploads"))
        self.database_url = os.getenv("DATABASE_URL") or None

    @property
    def model_candidates(self) -> List[str]:
        """Ordered model identifiers for the configured provider."""
        return list(self.llm_models or DEFAULT_MODELS[self.llm_provider])

    @property
    def llm_api_key(self) -> Optional[str]:
        if self.llm_provider == "openai":
            return self.openai_api_key
        return self.anthropic_api_key

    def get_log_file_path(self) -> Optional[Path]:
        return Path(self.log_file) if self.log_file else None


# Singleton instance
_settings = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
