"""Client configuration with environment variable loading.

Pydantic-based configuration for the chat API client, the streamed
answer timeout and the local session cache.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

_DEFAULT_CACHE_PATH = Path("data") / "chat_cache.json"


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class ClientConfig(BaseModel):
    """Configuration for the chat API client.

    Attributes:
        api_base_url: Base URL of the compliance API.
        access_token: Bearer token attached to every request.
        request_timeout: Timeout for plain request/response calls, in seconds.
        stream_idle_timeout: Silence after which a streamed answer is treated as failed.
        history_limit: Number of recent sessions kept per document scope.
        preview_length: Maximum length of a history entry preview.
        cache_path: JSON file backing the local session cache.
    """

    api_base_url: str = Field(
        default_factory=lambda: os.getenv("CHAT_API_BASE_URL", "http://localhost:8000"),
        description="Base URL of the compliance API",
    )
    access_token: str | None = Field(
        default_factory=lambda: os.getenv("CHAT_ACCESS_TOKEN") or None,
        description="Bearer token for API access",
    )
    request_timeout: float = Field(
        default_factory=lambda: _env_float("CHAT_REQUEST_TIMEOUT", 30.0),
        gt=0.0,
        description="Timeout for request/response calls in seconds",
    )
    stream_idle_timeout: float = Field(
        default_factory=lambda: _env_float("CHAT_STREAM_IDLE_TIMEOUT", 60.0),
        gt=0.0,
        description="Seconds without stream data before the answer is abandoned",
    )
    history_limit: int = Field(
        default_factory=lambda: _env_int("CHAT_HISTORY_LIMIT", 10),
        ge=1,
        le=100,
        description="Recent sessions kept per document scope",
    )
    preview_length: int = Field(
        default_factory=lambda: _env_int("CHAT_PREVIEW_LENGTH", 80),
        ge=10,
        le=500,
        description="Maximum characters of a history preview",
    )
    cache_path: Path = Field(
        default_factory=lambda: Path(os.getenv("CHAT_CACHE_PATH", str(_DEFAULT_CACHE_PATH))),
        description="JSON file backing the local session cache",
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate the URL scheme and drop any trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("CHAT_API_BASE_URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("access_token")
    @classmethod
    def blank_token_to_none(cls, v: str | None) -> str | None:
        """Treat a blank token as no token."""
        if v is None or not v.strip():
            return None
        return v.strip()


def get_client_config() -> ClientConfig:
    """Create client configuration from environment.

    Returns:
        Configured ClientConfig instance.

    Raises:
        ValueError: If a value from the environment fails validation.
    """
    return ClientConfig()
