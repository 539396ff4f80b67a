#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Process-wide EasyRest configuration.

Values come from keyword overrides first, then ``EASYREST_*`` environment
variables, then built-in defaults.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import math
import threading
from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIMEOUT_SECONDS = 100.0
DEFAULT_USER_AGENT = "easyrest"


class EasyRestConfig(BaseSettings):
    """
    Dispatcher-wide defaults.

    ``default_timeout`` is the request deadline in seconds used when a request
    carries no override; ``inf`` disables it. ``trace`` enables debug tracing
    of outbound requests. ``user_agent`` is sent by clients made with
    ``create_transport_client``.
    """

    model_config = SettingsConfigDict(
        env_prefix="EASYREST_",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    default_timeout: float = DEFAULT_TIMEOUT_SECONDS
    trace: bool = False
    log_level: str = "WARNING"
    user_agent: str = DEFAULT_USER_AGENT

    @field_validator("default_timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, v):  # type: ignore[no-untyped-def]
        if isinstance(v, str):
            value = v.strip().lower()
            if not value:
                return DEFAULT_TIMEOUT_SECONDS
            if value in {"inf", "infinite", "none"}:
                return math.inf
        return v

    @field_validator("default_timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("default_timeout must be positive")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v):  # type: ignore[no-untyped-def]
        if v is None:
            return "WARNING"
        return str(v).strip().upper() or "WARNING"

    @field_validator("user_agent", mode="before")
    @classmethod
    def _strip_user_agent(cls, v):  # type: ignore[no-untyped-def]
        if v is None:
            return DEFAULT_USER_AGENT
        return str(v).strip() or DEFAULT_USER_AGENT


_CONFIG_LOCK = threading.Lock()
_CONFIG: Optional[EasyRestConfig] = None


def get_config() -> EasyRestConfig:
    """
    Return the process-wide configuration, loading it from the environment once.
    """
    global _CONFIG

    if _CONFIG is not None:
        return _CONFIG

    with _CONFIG_LOCK:
        if _CONFIG is None:
            _CONFIG = EasyRestConfig()
        return _CONFIG


def create_config(base: Optional[EasyRestConfig] = None, **overrides: Any) -> EasyRestConfig:
    """
    Derive a configuration from ``base`` (or the process-wide one) with overrides.

    ``None`` overrides are ignored; the rest are validated like environment values.
    """
    source = base or get_config()
    values = {key: value for key, value in overrides.items() if value is not None}
    if not values:
        return source
    return EasyRestConfig.model_validate({**source.model_dump(), **values})


def reset_config() -> None:
    """Forget the cached process-wide configuration."""
    global _CONFIG

    with _CONFIG_LOCK:
        _CONFIG = None
