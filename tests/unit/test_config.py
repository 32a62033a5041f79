"""
Unit tests for configuration module.

Tests settings loading, validation, nested configuration, and caching.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from querygpt.config import (
    ChatServiceSettings,
    ConversationSettings,
    LoggingSettings,
    PromptSettings,
    SchemaSettings,
    SelectorSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)


class TestChatServiceSettings:
    """Test chat service configuration."""

    def test_defaults(self):
        settings = ChatServiceSettings()

        assert settings.base_url is None
        assert settings.chat_path == "/chat"
        assert settings.end_path == "/chat/end"
        assert settings.timeout == 60.0

    def test_base_url_from_env(self, monkeypatch):
        """Trailing slash is dropped so paths join cleanly."""
        monkeypatch.setenv("CHAT_SERVICE_BASE_URL", "https://chat.example.com/api/")

        settings = ChatServiceSettings()

        assert settings.base_url == "https://chat.example.com/api"

    def test_empty_base_url_is_missing(self, monkeypatch):
        monkeypatch.setenv("CHAT_SERVICE_BASE_URL", "  ")
        assert ChatServiceSettings().base_url is None

    def test_base_url_requires_http_scheme(self, monkeypatch):
        monkeypatch.setenv("CHAT_SERVICE_BASE_URL", "ftp://chat.example.com")

        with pytest.raises(ValidationError, match="http or https"):
            ChatServiceSettings()

    def test_paths_made_absolute(self, monkeypatch):
        monkeypatch.setenv("CHAT_SERVICE_CHAT_PATH", "v2/chat")
        assert ChatServiceSettings().chat_path == "/v2/chat"

    def test_timeout_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("CHAT_SERVICE_TIMEOUT", "0")

        with pytest.raises(ValidationError):
            ChatServiceSettings()


class TestSchemaSettings:
    """Test schema input configuration."""

    def test_defaults(self):
        settings = SchemaSettings()

        assert settings.csv_path is None
        assert settings.excluded_table_markers == ["_bkp_", "_backup"]

    def test_paths_from_env(self, monkeypatch):
        monkeypatch.setenv("SCHEMA_CSV_PATH", "data/schema.csv")
        monkeypatch.setenv("SCHEMA_RELATIONSHIPS_PATH", "")

        settings = SchemaSettings()

        assert settings.csv_path == Path("data/schema.csv")
        assert settings.relationships_path is None


class TestSelectorAndPromptSettings:
    def test_selector_defaults(self):
        settings = SelectorSettings()
        assert settings.max_fallback_tables == 6
        assert settings.min_word_length == 3

    def test_selector_bounds(self, monkeypatch):
        monkeypatch.setenv("SELECTOR_MAX_FALLBACK_TABLES", "0")

        with pytest.raises(ValidationError):
            SelectorSettings()

    def test_prompt_overrides(self, monkeypatch):
        monkeypatch.setenv("PROMPT_ASSISTANT_NAME", "Acme SQL")
        monkeypatch.setenv("PROMPT_MAX_TICKET_CHARS", "1000")

        settings = PromptSettings()

        assert settings.assistant_name == "Acme SQL"
        assert settings.max_ticket_chars == 1000


class TestConversationSettings:
    def test_defaults(self):
        settings = ConversationSettings()
        assert settings.idle_ttl_seconds == 3600
        assert settings.max_conversations == 500

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CONVERSATION_IDLE_TTL_SECONDS", "0")
        monkeypatch.setenv("CONVERSATION_MAX_CONVERSATIONS", "10")

        settings = Settings().conversations

        assert settings.idle_ttl_seconds == 0
        assert settings.max_conversations == 10

    def test_max_conversations_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("CONVERSATION_MAX_CONVERSATIONS", "0")

        with pytest.raises(ValidationError):
            ConversationSettings()


class TestLoggingSettings:
    def test_invalid_level_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")

        with pytest.raises(ValidationError):
            LoggingSettings()

    def test_log_file_directory_created(self, tmp_path):
        log_file = tmp_path / "logs" / "querygpt.log"

        LoggingSettings(file=log_file).configure()

        assert log_file.parent.exists()


class TestSettings:
    """Test main settings class."""

    def test_defaults(self):
        settings = Settings()

        assert settings.environment == "development"
        assert settings.app_name == "QueryGPT"
        assert settings.default_tenant == "lbpl"
        assert settings.is_development
        assert not settings.is_production

    def test_nested_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("CHAT_SERVICE_BASE_URL", "http://localhost:9000")
        monkeypatch.setenv("SELECTOR_MIN_WORD_LENGTH", "4")
        monkeypatch.setenv("ENVIRONMENT", "production")

        settings = Settings()

        assert settings.chat_service.base_url == "http://localhost:9000"
        assert settings.selector.min_word_length == 4
        assert settings.is_production

    def test_invalid_environment(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "qa")

        with pytest.raises(ValidationError):
            Settings()

    def test_env_file_in_working_directory(self, tmp_path):
        (tmp_path / ".env").write_text("DEFAULT_TENANT=kbl\n", encoding="utf-8")

        assert Settings().default_tenant == "kbl"


class TestSettingsCache:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_clear_settings_cache_reloads(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("DEFAULT_TENANT", "kbl")

        clear_settings_cache()
        second = get_settings()

        assert second is not first
        assert second.default_tenant == "kbl"
