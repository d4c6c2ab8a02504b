"""
Centralized settings for promise-cls.

Manifesto:
    One validated, cached settings object decides how the engine logs and
    how strictly it treats a target library that is missing expected
    methods.  Values come from ``PROMISE_CLS_*`` environment variables or a
    ``.env`` file so the same code runs quietly in production and verbosely
    while debugging a lost context.

Fields
──────
log_level        : Structlog log level
log_format       : ``console`` or ``json``
default_namespace: Namespace name used by ``get_namespace()`` with no argument
trace_bindings   : Emit a debug event every time a callback is bound
strict_patching  : Raise when a mandatory patch entry cannot be applied

Tags:
    promise-cls, configuration, settings, pydantic, caching

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PromiseClsSettings(BaseSettings):
    """promise-cls configuration.

    All fields can be set via ``PROMISE_CLS_*`` environment variables (e.g.
    ``PROMISE_CLS_TRACE_BINDINGS=true``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMISE_CLS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    # ── Context store ────────────────────────────────────────────
    default_namespace: str = Field(default="promise-cls", min_length=1)

    # ── Engine ───────────────────────────────────────────────────
    trace_bindings: bool = Field(default=False, description="Log every callback binding at debug level")
    strict_patching: bool = Field(default=True, description="Raise when a mandatory method is missing")

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"Unsupported log level: {value}")
        return level


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, PromiseClsSettings] = {}


def get_settings(*, _force_reload: bool = False) -> PromiseClsSettings:
    """Load, validate, and cache a :class:`PromiseClsSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = PromiseClsSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
