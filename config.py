"""
Configuration settings for the skillsim bridge.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are read with the SKILLSIM_ prefix (e.g. SKILLSIM_STORE_API_URL).
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SKILLSIM_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Session Store API
    # ========================================
    store_api_url: str = Field(
        default="",
        description="Base URL of the training session store (empty = use local SQL store)",
    )
    store_api_key: str = Field(
        default="",
        description="Bearer token sent to the session store",
    )
    api_timeout_ms: int = Field(
        default=10000,
        ge=100,
        description="Request timeout for session store calls in milliseconds",
    )
    api_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per session store request before giving up",
    )

    # ========================================
    # Local Store
    # ========================================
    database_url: str = Field(
        default="sqlite:///skillsim_sessions.db",
        description="SQLAlchemy URL for the local session store",
    )

    # ========================================
    # Engine Stream
    # ========================================
    connect_max_retries: int = Field(
        default=3,
        ge=1,
        description="Stream launch attempts before the connection is marked failed",
    )
    connect_retry_delay_ms: int = Field(
        default=2000,
        ge=0,
        description="Delay between stream launch attempts",
    )
    message_log_size: int = Field(
        default=100,
        ge=1,
        description="Number of protocol messages kept in the bus log",
    )
    debug_messages: bool = Field(
        default=False,
        description="Log every protocol message at DEBUG level",
    )

    # ========================================
    # Training
    # ========================================
    save_interval_ms: int = Field(
        default=5000,
        ge=0,
        description="Debounce window for training state snapshots",
    )
    persistence_enabled: bool = Field(
        default=True,
        description="Enable training state snapshots",
    )
    question_cache_ttl_seconds: float = Field(
        default=300.0,
        ge=0,
        description="How long fetched questions stay cached",
    )
    terminal_question_id: str = Field(
        default="Q6",
        description="Question whose acknowledgement unlocks the final pressure test",
    )
    legacy_restore_delay_ms: int = Field(
        default=2000,
        ge=0,
        description="Delay before replaying a legacy snapshot after connect",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str = Field(
        default="",
        description="Optional log file path (rotated at 10 MB)",
    )

    @property
    def has_remote_store(self) -> bool:
        return bool(self.store_api_url)

    @property
    def save_interval_seconds(self) -> float:
        return self.save_interval_ms / 1000.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
