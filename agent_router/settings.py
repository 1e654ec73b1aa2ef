"""
Typed settings management using pydantic-settings.

Configuration for the agent router is read from environment variables
(prefix ``AGENT_ROUTER_``) and an optional ``.env`` file. Nested sections use
``__`` as delimiter, e.g. ``AGENT_ROUTER_CACHE__CAPACITY=5000``.

Usage:
    from agent_router.settings import get_settings

    settings = get_settings()
    policy = settings.retry.to_policy()
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_router.core.model_resolver import FALLBACK_DEFAULT_MODEL
from agent_router.core.retry_executor import RetryPolicy
from agent_router.validation import is_valid_model_string

HOME_DIR = Path.home() / ".claude-code-router"
PROJECTS_FILE = HOME_DIR / "projects.json"


# =============================================================================
# Sections
# =============================================================================


class CacheSettings(BaseModel):
    """Session cache sizing."""

    capacity: int = Field(default=1000, ge=1, description="Maximum cached entries")


class RetrySettings(BaseModel):
    """Retry/backoff policy for upstream dispatch."""

    max_attempts: int = Field(default=3, ge=1, description="Total attempts, not retries")
    base_delay_ms: int = Field(default=1000, ge=0, description="Delay before the first retry")
    multiplier: float = Field(default=2.0, ge=1.0, description="Backoff growth factor")

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay_ms / 1000.0,
            multiplier=self.multiplier,
        )


class UpstreamSettings(BaseModel):
    """Where resolved requests are forwarded."""

    base_url: str = Field(default="http://127.0.0.1:3456", description="LLM gateway base URL")
    completions_path: str = Field(default="/v1/messages")
    timeout_seconds: float = Field(default=600.0, gt=0)
    api_key: Optional[SecretStr] = Field(default=None)


# =============================================================================
# Master Settings Class
# =============================================================================


class RouterSettings(BaseSettings):
    """Master settings for the router.

    ``default_model`` is the global ``Router.default``. When it is unset the
    resolver falls back to ``FALLBACK_DEFAULT_MODEL``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AGENT_ROUTER_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    default_model: Optional[str] = Field(default=None, description="Router.default")
    projects_file: Path = Field(default=PROJECTS_FILE)
    store_timeout_seconds: float = Field(default=5.0, gt=0, description="Per store lookup")
    log_level: str = Field(default="INFO")

    cache: CacheSettings = Field(default_factory=CacheSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)

    @field_validator("default_model")
    @classmethod
    def _check_default_model(cls, value: Optional[str]) -> Optional[str]:
        if value in (None, ""):
            return None
        if not is_valid_model_string(value):
            raise ValueError(
                f"Invalid default model {value!r}. Expected format: "
                '"provider,modelname" (e.g. "openai,gpt-4o")'
            )
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def effective_default_model(self) -> str:
        return self.default_model or FALLBACK_DEFAULT_MODEL


# =============================================================================
# Cached Singleton Accessors
# =============================================================================


@lru_cache(maxsize=1)
def get_settings() -> RouterSettings:
    """Get the cached settings singleton.

    To reload after the environment changed, call clear_settings_cache() first.
    """
    return RouterSettings()


def clear_settings_cache() -> None:
    """Drop the cached settings instance."""
    get_settings.cache_clear()


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the ``agent_router`` logger hierarchy once at process start.

    Returns the package logger so the bootstrap can hand it to components.
    """
    level = (level or get_settings().log_level).upper()
    logger = logging.getLogger("agent_router")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
    return logger
