"""Unit tests for ClientConfig."""

from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from compliance_chat.client.config import ClientConfig, get_client_config


class TestClientConfig:
    """Tests for ClientConfig validation."""

    def test_valid_config_with_all_fields(self) -> None:
        config = ClientConfig(
            api_base_url="https://api.example.com/",
            access_token="abc",
            request_timeout=5.0,
            stream_idle_timeout=15.0,
            history_limit=5,
            preview_length=50,
            cache_path=Path("/tmp/cache.json"),
        )

        assert config.api_base_url == "https://api.example.com"
        assert config.access_token == "abc"
        assert config.stream_idle_timeout == 15.0
        assert config.history_limit == 5

    def test_defaults(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            config = ClientConfig()

        assert config.api_base_url == "http://localhost:8000"
        assert config.access_token is None
        assert config.history_limit == 10
        assert config.stream_idle_timeout == 60.0

    def test_rejects_url_without_scheme(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ClientConfig(api_base_url="api.example.com")

        assert "CHAT_API_BASE_URL" in str(exc_info.value)

    def test_blank_token_becomes_none(self) -> None:
        config = ClientConfig(access_token="   ")

        assert config.access_token is None

    @pytest.mark.parametrize("limit", [0, 101])
    def test_history_limit_bounds(self, limit: int) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ClientConfig(history_limit=limit)

        assert "history_limit" in str(exc_info.value)

    def test_idle_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(stream_idle_timeout=0)


class TestGetClientConfig:
    """Tests for get_client_config factory function."""

    def test_reads_environment(self) -> None:
        env = {
            "CHAT_API_BASE_URL": "https://compliance.internal",
            "CHAT_ACCESS_TOKEN": "env-token",
            "CHAT_HISTORY_LIMIT": "3",
            "CHAT_STREAM_IDLE_TIMEOUT": "2.5",
        }
        with patch.dict("os.environ", env):
            config = get_client_config()

        assert config.api_base_url == "https://compliance.internal"
        assert config.access_token == "env-token"
        assert config.history_limit == 3
        assert config.stream_idle_timeout == 2.5
