"""
Type-safe configuration for the workflow builder using Pydantic Settings.

Values load from environment variables and a ``.env`` file.

Usage:
    from shared.config import config

    store = SessionStore(config.builder_home)
"""
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BuilderConfig(BaseSettings):
    """
    Central configuration for the builder CLI.

    All configuration is loaded from environment variables or .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ============================================================================
    # Session Storage
    # ============================================================================

    builder_home: Path = Field(
        default=Path.home() / ".workflow-builder",
        description="Directory holding builder session records and the current-session pointer",
    )
    builder_lock_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for the session store lock before giving up",
    )

    # ============================================================================
    # Workflow Service
    # ============================================================================

    workflow_api_endpoint: str = Field(
        default="http://localhost:5800",
        description="Base URL of the workflow-creation service",
    )
    workflow_api_key: Optional[str] = Field(default=None, description="API key sent as X-API-Key on commit")
    workflow_api_timeout: Optional[float] = Field(
        default=None,
        description="Commit request timeout in seconds (unset waits indefinitely)",
    )

    # ============================================================================
    # Logging
    # ============================================================================

    log_level: str = Field(default="WARNING", description="Log level for builder diagnostics (stderr)")

    @field_validator("builder_home")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()

    @property
    def is_api_key_configured(self) -> bool:
        return bool(self.workflow_api_key)


# ============================================================================
# Global Config Instance
# ============================================================================

config = BuilderConfig()
