"""
Application Configuration

Pydantic-based settings management using environment variables.
Supports nested configuration, validation, and caching.

Usage:
    from querygpt.config import get_settings

    settings = get_settings()
    print(settings.chat_service.base_url)
    print(settings.schema_files.csv_path)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChatServiceSettings(BaseSettings):
    """Remote chat completion service configuration."""

    base_url: str | None = Field(
        None,
        description="Base URL of the chat service (e.g. https://host/api). Required for generation.",
    )
    chat_path: str = Field(default="/chat", description="Path of the completion endpoint")
    end_path: str = Field(default="/chat/end", description="Path of the session-termination endpoint")
    timeout: float = Field(
        default=60.0,
        gt=0,
        description="Request timeout in seconds",
    )
    error_message_max_chars: int = Field(
        default=200,
        ge=20,
        le=2000,
        description="Maximum characters of a service error message shown to users",
    )

    model_config = SettingsConfigDict(
        env_prefix="CHAT_SERVICE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, v: str | None) -> str | None:
        """Treat empty strings as missing and drop the trailing slash."""
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("CHAT_SERVICE_BASE_URL must use http or https scheme.")
        return v.rstrip("/")

    @field_validator("chat_path", "end_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Endpoint paths are joined onto base_url and must be absolute."""
        if not v.startswith("/"):
            return f"/{v}"
        return v


class SchemaSettings(BaseSettings):
    """Schema and description input files."""

    csv_path: Path | None = Field(
        default=None,
        description="Column catalog CSV (table_name, column_name, data_type, is_nullable, column_key, column_default)",
    )
    table_descriptions_path: Path | None = Field(
        default=None, description="YAML/JSON map of table name to description"
    )
    column_descriptions_path: Path | None = Field(
        default=None,
        description="YAML/JSON map of table name to {column: description | {description, example}}",
    )
    relationships_path: Path | None = Field(
        default=None, description="YAML/JSON list of foreign-key relationships"
    )
    column_mappings_path: Path | None = Field(
        default=None, description="YAML/JSON list of generic column-to-table join hints"
    )
    excluded_table_markers: list[str] = Field(
        default_factory=lambda: ["_bkp_", "_backup"],
        description="Tables whose name contains any of these markers are skipped",
    )

    model_config = SettingsConfigDict(
        env_prefix="SCHEMA_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator(
        "csv_path",
        "table_descriptions_path",
        "column_descriptions_path",
        "relationships_path",
        "column_mappings_path",
        mode="before",
    )
    @classmethod
    def normalize_path(cls, v: str | Path | None) -> str | Path | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v


class SelectorSettings(BaseSettings):
    """Table relevance selector configuration."""

    max_fallback_tables: int = Field(
        default=6,
        ge=1,
        le=50,
        description="Maximum tables returned by the keyword-overlap fallback",
    )
    min_word_length: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Minimum question word length considered by the fallback",
    )

    model_config = SettingsConfigDict(
        env_prefix="SELECTOR_",
        env_file=".env",
        extra="ignore",
    )


class PromptSettings(BaseSettings):
    """Prompt compilation configuration."""

    assistant_name: str = Field(
        default="SalesCode QueryGPT",
        description="Name the model uses to refer to itself",
    )
    max_ticket_chars: int = Field(
        default=4000,
        ge=200,
        le=50000,
        description="Maximum ticket description characters injected into prompts",
    )

    model_config = SettingsConfigDict(
        env_prefix="PROMPT_",
        env_file=".env",
        extra="ignore",
    )


class ConversationSettings(BaseSettings):
    """Limits on conversations held by the HTTP API."""

    idle_ttl_seconds: int = Field(
        default=3600,
        ge=0,
        description="Seconds a conversation may stay idle before it is closed (0 disables expiry)",
    )
    max_conversations: int = Field(
        default=500,
        ge=1,
        le=100000,
        description="Maximum open conversations; the least recently used one is closed beyond this",
    )

    model_config = SettingsConfigDict(
        env_prefix="CONVERSATION_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,  # Override any existing configuration
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    Settings are nested by domain (chat service, schema, selector, prompt,
    conversations, logging).

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        DEBUG: Enable debug mode
        API_HOST: API server host
        API_PORT: API server port
        DEFAULT_TENANT: Tenant selected for new conversations
        CHAT_SERVICE_*: Remote chat service (see ChatServiceSettings)
        SCHEMA_*: Schema input files (see SchemaSettings)
        SELECTOR_*: Table selector tuning (see SelectorSettings)
        PROMPT_*: Prompt compilation (see PromptSettings)
        CONVERSATION_*: HTTP conversation limits (see ConversationSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.selector.max_fallback_tables
        6
        >>> settings.is_production
        False
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="QueryGPT",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        gt=0,
        le=65535,
        description="API server port",
    )
    default_tenant: str = Field(
        default="lbpl",
        description="Tenant selected for new conversations",
    )

    # Nested settings
    chat_service: ChatServiceSettings = Field(default_factory=ChatServiceSettings)
    schema_files: SchemaSettings = Field(default_factory=SchemaSettings)
    selector: SelectorSettings = Field(default_factory=SelectorSettings)
    prompt: PromptSettings = Field(default_factory=PromptSettings)
    conversations: ConversationSettings = Field(default_factory=ConversationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    def model_post_init(self, __context) -> None:
        """Configure logging and log configuration on initialization."""
        self.logging.configure()
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "debug": self.debug,
                "chat_service_configured": self.chat_service.base_url is not None,
                "schema_csv": str(self.schema_files.csv_path) if self.schema_files.csv_path else None,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("QUERYGPT_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses functools.lru_cache to ensure settings are loaded only once.

    Returns:
        Settings: Singleton settings instance
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.

    Example:
        >>> import os
        >>> os.environ["ENVIRONMENT"] = "production"
        >>> clear_settings_cache()
        >>> settings = get_settings()  # Reloads with new env vars
    """
    get_settings.cache_clear()
