"""Settings loading from environment variables and config files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class MissingAPIKeyError(Exception):
    """Raised when no API key is configured for the generation backend."""

    def __init__(self) -> None:
        super().__init__(
            "No API key configured. Set:\n"
            "  export GROQ_API_KEY='gsk_...'\n"
            "or add 'groq_api_key' to ~/.config/tripwise/config.yaml"
        )


_DEFAULT_CONFIG_PATH = Path.home() / ".config" / "tripwise" / "config.yaml"


class Settings(BaseModel):
    """Application settings."""

    groq_api_key: str = Field(default="", description="Groq API key")
    groq_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="Groq OpenAI-compatible API base URL",
    )
    generation_timeout: float = Field(
        default=90.0,
        description="Deadline in seconds for one whole itinerary generation",
    )
    validation_timeout: float = Field(
        default=5.0,
        description="Deadline in seconds for a single answer-correction call",
    )
    request_timeout: float = Field(
        default=60.0, description="HTTP timeout for a single provider request"
    )
    max_retries: int = Field(default=2, description="Retries per tier for transient failures")
    retry_base_delay: float = Field(
        default=1.0, description="Backoff base delay in seconds (multiplied by attempt index)"
    )
    min_content_length: int = Field(
        default=100,
        description="Outputs at or below this many characters are rejected as too short",
    )
    server_host: str = Field(default="127.0.0.1")
    server_port: int = Field(default=8000)
    cascade: list[dict[str, Any]] | None = Field(
        default=None,
        description="Ordered model tiers overriding the built-in cascade",
    )

    @property
    def has_api_key(self) -> bool:
        return bool(self.groq_api_key)


# Environment variable -> Settings field. The cascade can only come from the file.
_ENV_VARS = {
    "GROQ_API_KEY": "groq_api_key",
    "GROQ_BASE_URL": "groq_base_url",
    "TRIPWISE_GENERATION_TIMEOUT": "generation_timeout",
    "TRIPWISE_VALIDATION_TIMEOUT": "validation_timeout",
    "TRIPWISE_REQUEST_TIMEOUT": "request_timeout",
    "TRIPWISE_MAX_RETRIES": "max_retries",
    "TRIPWISE_RETRY_BASE_DELAY": "retry_base_delay",
    "TRIPWISE_MIN_CONTENT_LENGTH": "min_content_length",
    "TRIPWISE_SERVER_HOST": "server_host",
    "TRIPWISE_SERVER_PORT": "server_port",
}


def config_path() -> Path:
    """Config file location: ``$TRIPWISE_CONFIG`` or the per-user default."""
    override = os.environ.get("TRIPWISE_CONFIG")
    return Path(override).expanduser() if override else _DEFAULT_CONFIG_PATH


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    with path.open() as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def load_settings(path: Path | None = None) -> Settings:
    """Build settings from the YAML config file with environment variables on top."""
    values = _read_config_file(path or config_path())
    values.update(
        {field: os.environ[var] for var, field in _ENV_VARS.items() if var in os.environ}
    )
    return Settings(**values)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings so the next ``get_settings`` reloads them."""
    global _settings
    _settings = None
