"""
Engine Configuration

Loads runtime settings for the lesson engine from the environment
(and a local .env file when present).
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class EngineSettings:
    """Runtime settings for generation, caching and session lifetime."""
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    generation_timeout_seconds: float = 30.0
    collaborator_timeout_seconds: float = 10.0
    generation_temperature: float = 0.7
    generation_max_tokens: int = 1500
    # Response cache
    response_cache_ttl_seconds: int = 300
    response_cache_max_size: int = 100
    # Session lifetime
    session_ttl_seconds: int = 7200
    session_sweep_interval_seconds: int = 300
    snapshot_max_age_seconds: float = 60.0
    # Lesson defaults
    fallback_plan_steps: int = 8
    default_lesson_topic: str = "space_exploration"
    # HTTP
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    port: int = 8000

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from environment variables, using defaults where unset."""
        defaults = cls()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", defaults.openai_model),
            generation_timeout_seconds=_env_float("GENERATION_TIMEOUT_SECONDS", defaults.generation_timeout_seconds),
            collaborator_timeout_seconds=_env_float("COLLABORATOR_TIMEOUT_SECONDS", defaults.collaborator_timeout_seconds),
            generation_temperature=_env_float("GENERATION_TEMPERATURE", defaults.generation_temperature),
            generation_max_tokens=_env_int("GENERATION_MAX_TOKENS", defaults.generation_max_tokens),
            response_cache_ttl_seconds=_env_int("RESPONSE_CACHE_TTL_SECONDS", defaults.response_cache_ttl_seconds),
            response_cache_max_size=_env_int("RESPONSE_CACHE_MAX_SIZE", defaults.response_cache_max_size),
            session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", defaults.session_ttl_seconds),
            session_sweep_interval_seconds=_env_int("SESSION_SWEEP_INTERVAL_SECONDS", defaults.session_sweep_interval_seconds),
            snapshot_max_age_seconds=_env_float("SNAPSHOT_MAX_AGE_SECONDS", defaults.snapshot_max_age_seconds),
            fallback_plan_steps=max(1, _env_int("FALLBACK_PLAN_STEPS", defaults.fallback_plan_steps)),
            default_lesson_topic=os.getenv("DEFAULT_LESSON_TOPIC", defaults.default_lesson_topic),
            cors_origins=_env_list("CORS_ORIGINS", defaults.cors_origins),
            port=_env_int("PORT", defaults.port),
        )
