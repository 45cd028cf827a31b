"""Runtime settings for the assistant, read from the environment."""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache


@dataclasses.dataclass(frozen=True)
class AssistantSettings:
    """Tunables shared by the pipeline services and the HTTP layer."""

    context_max_messages: int = 20
    session_ttl_seconds: float = 30 * 60
    session_sweep_interval_seconds: float = 5 * 60
    assistant_latency_seconds: float = 0.0
    assistant_timeout_seconds: float = 30.0
    submission_latency_seconds: float = 0.5
    intent_patterns_path: str | None = None
    scenario_catalog_path: str | None = None
    historical_cases_path: str | None = None
    chat_max_message_length: int = 5000
    session_id_max_length: int = 64
    chat_rate_limit: str = "30/minute"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@lru_cache(maxsize=1)
def get_settings() -> AssistantSettings:
    """Load settings from the environment with defaults suited to the demo."""

    return AssistantSettings(
        context_max_messages=_env_int("CONTEXT_MAX_MESSAGES", 20),
        session_ttl_seconds=_env_float("SESSION_TTL_SECONDS", 30 * 60),
        session_sweep_interval_seconds=_env_float(
            "SESSION_SWEEP_INTERVAL_SECONDS", 5 * 60
        ),
        assistant_latency_seconds=_env_float("ASSISTANT_LATENCY_SECONDS", 0.0),
        assistant_timeout_seconds=_env_float("ASSISTANT_TIMEOUT_SECONDS", 30.0),
        submission_latency_seconds=_env_float("SUBMISSION_LATENCY_SECONDS", 0.5),
        intent_patterns_path=os.getenv("INTENT_PATTERNS_PATH") or None,
        scenario_catalog_path=os.getenv("SCENARIO_CATALOG_PATH") or None,
        historical_cases_path=os.getenv("HISTORICAL_CASES_PATH") or None,
        chat_max_message_length=_env_int("CHAT_MAX_MESSAGE_LENGTH", 5000),
        session_id_max_length=_env_int("SESSION_ID_MAX_LENGTH", 64),
        chat_rate_limit=os.getenv("CHAT_RATE_LIMIT", "30/minute"),
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()
