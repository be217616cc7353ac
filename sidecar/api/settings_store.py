"""
Settings for the condition engine, read from environment variables.

Public API: get_settings, get_api_key_for_provider, build_llm_client.
Values are read fresh on every call so tests and deployments can change
the environment without a restart.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from api.condition_models import EngineSettings, LLMProviderEnum
from llm.client import LLMClient, LLMProvider

logger = logging.getLogger(__name__)

_DEFAULTS = EngineSettings()


def _require_auth() -> bool:
    return os.getenv("REQUIRE_AUTH", "").lower() == "true"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


def _env_number(name: str, default, cast, low=None, high=None):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring malformed %s=%r; using %s", name, raw, default)
        return default
    if (low is not None and value < low) or (high is not None and value > high):
        logger.warning("Ignoring out-of-range %s=%r; using %s", name, raw, default)
        return default
    return value


def get_settings() -> EngineSettings:
    """Return current settings (loaded fresh from the environment)."""
    provider_raw = os.getenv("CONDITION_LLM_PROVIDER", "").strip().lower()
    try:
        provider = LLMProviderEnum(provider_raw) if provider_raw else _DEFAULTS.llm_provider
    except ValueError:
        logger.warning("Unknown CONDITION_LLM_PROVIDER=%r; using claude", provider_raw)
        provider = _DEFAULTS.llm_provider

    timeout = _env_number(
        "ORACLE_TIMEOUT_SECONDS", _DEFAULTS.oracle_timeout_seconds, float, low=0.001
    )
    threshold = _env_number(
        "AUTO_ADD_THRESHOLD", _DEFAULTS.auto_add_threshold, int, low=0, high=100
    )

    return EngineSettings(
        llm_provider=provider,
        claude_model=os.getenv("CLAUDE_MODEL") or None,
        openai_model=os.getenv("OPENAI_MODEL") or None,
        aws_region=os.getenv("AWS_REGION", _DEFAULTS.aws_region),
        oracle_enabled=_env_bool("ORACLE_ENABLED", _DEFAULTS.oracle_enabled),
        oracle_timeout_seconds=timeout,
        auto_add_threshold=threshold,
    )


def get_api_key_for_provider(provider: str) -> str | dict | None:
    """Get the API key for the given provider.

    Bedrock uses the IAM role (no explicit credentials); Claude and OpenAI
    keys come from ANTHROPIC_API_KEY / OPENAI_API_KEY.
    """
    if provider == "bedrock":
        return {
            "access_key": "iam_role",
            "secret_key": "",
            "region": os.getenv("AWS_REGION", "us-east-1"),
        }
    elif provider == "claude":
        return os.getenv("ANTHROPIC_API_KEY") or None
    elif provider == "openai":
        return os.getenv("OPENAI_API_KEY") or None
    return None


def build_llm_client(settings: Optional[EngineSettings] = None) -> Optional[LLMClient]:
    """LLM client for the configured provider, or None when unavailable.

    None means the engine runs on local combination detection only: the
    oracle is disabled, no key is configured, or the provider is not
    BAA-covered in production.
    """
    settings = settings or get_settings()
    if not settings.oracle_enabled:
        return None

    provider_str = settings.llm_provider.value
    api_key = get_api_key_for_provider(provider_str)
    if not api_key:
        logger.info("No API key configured for %s; LLM suggestions disabled", provider_str)
        return None

    if settings.llm_provider == LLMProviderEnum.OPENAI:
        model = settings.openai_model
    else:
        model = settings.claude_model

    try:
        return LLMClient(provider=LLMProvider(provider_str), api_key=api_key, model=model)
    except ValueError as e:
        level = logging.ERROR if _require_auth() else logging.WARNING
        logger.log(level, "LLM client unavailable: %s", e)
        return None
