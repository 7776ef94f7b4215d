"""Loot poll settings.

Read from the environment (and an optional ``.env``) by pydantic-settings.
Nested groups use ``__``, e.g. ``RULES__REVISION=alternate``. Every group is
frozen once loaded.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.polls.buckets import BucketRuleSet, RuleRevision
from ..domain.shared.messages import ErrorMessages
from ..domain.shared.types import BusyTimeoutMs, ConnectionTimeoutS, SweepIntervalS


class DatabaseSettings(BaseModel):
    """Database configuration."""

    model_config = SettingsConfigDict(frozen=True, strict=True, populate_by_name=True)

    url: str = Field(
        default="sqlite:///data/loot_polls.db",
        validation_alias=AliasChoices("url", "database_url", "db_url"),
    )
    busy_timeout_ms: BusyTimeoutMs = Field(
        default=5000,
        validation_alias=AliasChoices("busy_timeout_ms", "busy_timeout"),
    )
    connection_timeout_s: ConnectionTimeoutS = Field(
        default=10,
        validation_alias=AliasChoices("connection_timeout_s", "connection_timeout"),
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith("sqlite://"):
            raise ValueError(ErrorMessages.INVALID_DATABASE_URL)
        return v


class VoteRuleSettings(BaseModel):
    """Bucket rule selection."""

    model_config = SettingsConfigDict(frozen=True, strict=True)

    revision: Literal["current", "alternate"] = "current"
    strict_weapon_types: bool = False

    def build_rule_set(self) -> BucketRuleSet:
        return BucketRuleSet.for_revision(
            RuleRevision(self.revision), strict_weapon_types=self.strict_weapon_types
        )


class ExpirySettings(BaseModel):
    """Ballot expiry sweep configuration."""

    model_config = SettingsConfigDict(frozen=True, strict=True)

    sweep_interval_seconds: SweepIntervalS = 60
    negotiation_ttl_seconds: int = Field(default=900, ge=60)


class DiscordSettings(BaseModel):
    """Timeouts for the interactive Discord views."""

    model_config = SettingsConfigDict(frozen=True, strict=True)

    replacement_view_timeout_s: float = Field(default=180.0, ge=10.0, le=900.0)
    vote_context_view_timeout_s: float = Field(default=120.0, ge=10.0, le=900.0)


class Settings(BaseSettings):
    """Top-level settings.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DATABASE__URL, RULES__REVISION, EXPIRY__SWEEP_INTERVAL_SECONDS, etc.
      (nested with ``__``)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        strict=True,
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    rules: VoteRuleSettings = Field(default_factory=VoteRuleSettings)
    expiry: ExpirySettings = Field(default_factory=ExpirySettings)
    discord: DiscordSettings = Field(default_factory=DiscordSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=valid_levels)
            )
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings loaded once per process; call clear_settings_cache() to reload."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
