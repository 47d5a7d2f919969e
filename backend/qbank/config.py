"""
Generation settings for the question bank backend.

Read once from the environment at process start and injected into the
schedulers; nothing below re-reads the environment afterwards.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CANDIDATE_MODELS: Tuple[str, ...] = (
    "gpt-4o-mini",
    "gpt-4o",
    "gpt-4.1-mini",
    "gpt-3.5-turbo",
)


def _env_number(name: str, default, cast, minimum):
    """Parse a numeric setting; malformed or out-of-range values fall back to the default."""
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        parsed = cast(value.strip())
    except ValueError:
        logger.warning(f"Ignoring {name}={value!r}: not a valid {cast.__name__}; using {default}")
        return default
    if parsed < minimum:
        logger.warning(f"Ignoring {name}={value!r}: must be at least {minimum}; using {default}")
        return default
    return parsed


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    return _env_number(name, default, int, minimum)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    return _env_number(name, default, float, minimum)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GenerationSettings:
    """Configuration for the generator and both schedulers."""

    # LLM provider
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None  # OpenAI-compatible endpoint override
    llm_model: Optional[str] = None  # None = probe candidate_models
    candidate_models: Tuple[str, ...] = field(default_factory=lambda: DEFAULT_CANDIDATE_MODELS)
    llm_timeout_seconds: float = 300.0

    # Batch sizes
    subject_batch_size: int = 10
    job_batch_size: int = 5

    # Tick intervals (in seconds)
    subject_tick_seconds: float = 300.0  # Every 5 minutes
    job_tick_seconds: float = 30.0
    startup_delay_seconds: float = 5.0
    job_kick_delay_seconds: float = 1.0

    # Consecutive failures before a job is marked failed
    max_job_errors: int = 3

    background_enabled: bool = True

    @classmethod
    def from_env(cls) -> "GenerationSettings":
        candidates = os.getenv("LLM_CANDIDATE_MODELS")
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            llm_model=os.getenv("LLM_MODEL") or None,
            candidate_models=(
                tuple(m.strip() for m in candidates.split(",") if m.strip())
                if candidates else DEFAULT_CANDIDATE_MODELS
            ),
            llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 300.0, minimum=1.0),
            subject_batch_size=_env_int("SUBJECT_BATCH_SIZE", 10),
            job_batch_size=_env_int("JOB_BATCH_SIZE", 5),
            subject_tick_seconds=_env_float("SUBJECT_TICK_SECONDS", 300.0, minimum=1.0),
            job_tick_seconds=_env_float("JOB_TICK_SECONDS", 30.0, minimum=1.0),
            startup_delay_seconds=_env_float("GENERATION_STARTUP_DELAY_SECONDS", 5.0),
            job_kick_delay_seconds=_env_float("JOB_KICK_DELAY_SECONDS", 1.0),
            max_job_errors=_env_int("MAX_JOB_ERRORS", 3),
            background_enabled=_env_bool("ENABLE_BACKGROUND_GENERATION", True),
        )
