"""
Environment Configuration
=========================

Reads the process environment once at startup. A missing API key is a
startup failure, never a per-cycle one.

Usage:
    from config.settings import load_settings
    settings = load_settings()
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from config.constants import (
    COGNITIVE_FALLBACK_MODEL,
    DEFAULT_AGENT_TIMEOUT_SECONDS,
    DEFAULT_FANOUT,
    DEFAULT_MAGISTRAL_AGENT,
    DEFAULT_NEURON_COUNT,
    DEFAULT_PIXTRAL_AGENT,
    DEFAULT_PORT,
    DEFAULT_RATE_LIMIT,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_STEP_INTERVAL_SECONDS,
    MISTRAL_API_URL,
    TRANSLATOR_FALLBACK_MODEL,
)
from core.exceptions import ConfigError


@dataclass(frozen=True)
class Settings:
    api_key: str
    api_url: str = MISTRAL_API_URL
    translator_agent_id: str = DEFAULT_PIXTRAL_AGENT
    cognitive_agent_id: str = DEFAULT_MAGISTRAL_AGENT
    translator_fallback_model: str = TRANSLATOR_FALLBACK_MODEL
    cognitive_fallback_model: str = COGNITIVE_FALLBACK_MODEL
    agent_timeout: float = DEFAULT_AGENT_TIMEOUT_SECONDS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    port: int = DEFAULT_PORT
    reservoir_library: Optional[str] = None
    neuron_count: int = DEFAULT_NEURON_COUNT
    fanout: int = DEFAULT_FANOUT
    step_interval: float = DEFAULT_STEP_INTERVAL_SECONDS
    rate_limit: str = DEFAULT_RATE_LIMIT
    log_level: str = "INFO"


def _get_number(environ: Mapping[str, str], name: str, default, cast):
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a {cast.__name__}, got {raw!r}")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Populated Settings

    Raises:
        ConfigError: MISTRAL_API_KEY is missing, an agent id is blank,
            or a numeric option does not parse
    """
    env = os.environ if environ is None else environ

    api_key = env.get("MISTRAL_API_KEY", "").strip()
    if not api_key:
        raise ConfigError("set MISTRAL_API_KEY environment variable before starting")

    translator_agent = env.get("PIXTRAL_AGENT_ID", DEFAULT_PIXTRAL_AGENT).strip()
    cognitive_agent = env.get("MAGISTRAL_AGENT_ID", DEFAULT_MAGISTRAL_AGENT).strip()
    if not translator_agent or not cognitive_agent:
        raise ConfigError("PIXTRAL_AGENT_ID and MAGISTRAL_AGENT_ID must not be empty")

    # A single FALLBACK_MODEL overrides both roles; otherwise each keeps its own
    fallback_override = env.get("FALLBACK_MODEL", "").strip()

    return Settings(
        api_key=api_key,
        api_url=env.get("MISTRAL_API_URL", MISTRAL_API_URL).rstrip("/"),
        translator_agent_id=translator_agent,
        cognitive_agent_id=cognitive_agent,
        translator_fallback_model=fallback_override or TRANSLATOR_FALLBACK_MODEL,
        cognitive_fallback_model=fallback_override or COGNITIVE_FALLBACK_MODEL,
        agent_timeout=_get_number(env, "AGENT_TIMEOUT_SECONDS", DEFAULT_AGENT_TIMEOUT_SECONDS, float),
        request_timeout=_get_number(env, "REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS, float),
        port=_get_number(env, "PORT", DEFAULT_PORT, int),
        reservoir_library=env.get("RESERVOIR_LIBRARY", "").strip() or None,
        neuron_count=_get_number(env, "RESERVOIR_NEURONS", DEFAULT_NEURON_COUNT, int),
        fanout=_get_number(env, "RESERVOIR_FANOUT", DEFAULT_FANOUT, int),
        step_interval=_get_number(env, "STEP_INTERVAL_SECONDS", DEFAULT_STEP_INTERVAL_SECONDS, float),
        rate_limit=env.get("RATE_LIMIT", "").strip() or DEFAULT_RATE_LIMIT,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
