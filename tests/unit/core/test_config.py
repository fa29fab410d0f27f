"""Tests for pipeline settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from inbox_automation.core.config import AutomationSettings, get_settings


class TestAutomationSettings:
    """Tests for AutomationSettings."""

    def test_defaults(self) -> None:
        """Test default values."""
        settings = AutomationSettings(_env_file=None)  # type: ignore[call-arg]

        assert settings.ai_timeout_seconds == 5.0
        assert settings.spam_threshold == 80
        assert settings.batch_window_seconds == 600.0
        assert settings.min_batch_size == 2
        assert settings.max_body_length == 200
        assert settings.cron_interval_seconds == 900
        assert settings.reply_generation_confidence == 60

    def test_reads_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test values load from INBOX_AUTOMATION_ variables."""
        monkeypatch.setenv("INBOX_AUTOMATION_SPAM_THRESHOLD", "90")
        monkeypatch.setenv("INBOX_AUTOMATION_MAX_CONCURRENT_USERS", "8")

        settings = AutomationSettings(_env_file=None)  # type: ignore[call-arg]

        assert settings.spam_threshold == 90
        assert settings.max_concurrent_users == 8

    def test_strips_trailing_slash(self) -> None:
        """Test endpoint URLs are normalized."""
        settings = AutomationSettings(
            _env_file=None,  # type: ignore[call-arg]
            ollama_local_url="http://localhost:11434/",
            ollama_remote_url="https://ollama.example.com/",
        )

        assert settings.ollama_local_url == "http://localhost:11434"
        assert settings.ollama_remote_url == "https://ollama.example.com"

    def test_base_url_prefers_local(self) -> None:
        """Test local endpoint is used unless disabled."""
        settings = AutomationSettings(
            _env_file=None,  # type: ignore[call-arg]
            ollama_remote_url="https://ollama.example.com",
        )
        assert settings.ollama_base_url == "http://localhost:11434"

        remote = AutomationSettings(
            _env_file=None,  # type: ignore[call-arg]
            ollama_remote_url="https://ollama.example.com",
            ollama_use_local=False,
        )
        assert remote.ollama_base_url == "https://ollama.example.com"

    def test_rejects_inverted_priority_thresholds(self) -> None:
        """Test medium threshold cannot exceed high threshold."""
        with pytest.raises(ValidationError):
            AutomationSettings(
                _env_file=None,  # type: ignore[call-arg]
                high_priority_threshold=50,
                medium_priority_threshold=60,
            )

    def test_rejects_out_of_range_threshold(self) -> None:
        """Test field bounds are enforced."""
        with pytest.raises(ValidationError):
            AutomationSettings(_env_file=None, spam_threshold=101)  # type: ignore[call-arg]

    def test_get_settings_is_cached(self) -> None:
        """Test the accessor returns one instance."""
        get_settings.cache_clear()

        assert get_settings() is get_settings()
        get_settings.cache_clear()
