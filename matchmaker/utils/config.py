import os

from dotenv import load_dotenv

from matchmaker.models.ai_settings import (
    GenerationSettings, LLMSettings, MatchingRules, MatchmakingSettings,
    ModelTier, Settings,
)
from matchmaker.utils.exceptions import ConfigurationError

load_dotenv()

_TRUE = {"1", "true", "yes", "on"}


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in _TRUE


def _env_number(key: str, default, cast=int):
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number", config_key=key, config_value=raw, cause=e)


def load_settings() -> Settings:
    """Build the service settings from the environment (.env supported)."""
    primary = ModelTier(
        model_name=os.getenv("GEMINI_PRIMARY_MODEL", "gemini-1.5-flash"),
        generation=GenerationSettings(
            temperature=_env_number("GEMINI_TEMPERATURE", 0.4, float),
            max_output_tokens=_env_number("GEMINI_PRIMARY_MAX_TOKENS", 8192),
        ),
    )
    fallback = ModelTier(
        model_name=os.getenv("GEMINI_FALLBACK_MODEL", "gemini-pro"),
        generation=GenerationSettings(
            temperature=_env_number("GEMINI_TEMPERATURE", 0.4, float),
            max_output_tokens=_env_number("GEMINI_FALLBACK_MAX_TOKENS", 4096),
        ),
    )
    llm = LLMSettings(
        api_key=os.getenv("GEMINI_API_KEY") or None,
        base_url=os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
        timeout=_env_number("GEMINI_TIMEOUT", 120),
        primary=primary,
        fallback=fallback,
    )
    matchmaking = MatchmakingSettings(
        job_limit=_env_number("MATCHMAKING_JOB_LIMIT", 100),
        chunk_size=_env_number("MATCHMAKING_CHUNK_SIZE", 30),
        ttl_days=_env_number("MATCHMAKING_TTL_DAYS", 14),
        defer_job_deletion=_env_bool("MATCHMAKING_DEFER_JOB_DELETION", False),
        rules=MatchingRules(
            min_score=_env_number("MATCHMAKING_MIN_SCORE", 0.35, float),
            max_suggestions=_env_number("MATCHMAKING_MAX_SUGGESTIONS", 5),
            reason_max_chars=_env_number("MATCHMAKING_REASON_MAX_CHARS", 80),
        ),
        schedule_enabled=_env_bool("MATCHMAKING_SCHEDULE_ENABLED", False),
        interval_hours=_env_number("MATCHMAKING_INTERVAL_HOURS", 24, float),
        timezone=os.getenv("MATCHMAKING_TIMEZONE", "UTC"),
        retries=_env_number("MATCHMAKING_RETRIES", 3),
        watch_inserts=_env_bool("MATCHMAKING_WATCH_INSERTS", False),
    )
    return Settings(
        mongo_details=os.getenv("MONGO_DETAILS", "mongodb://localhost:27017/?replicaSet=rs0"),
        db_name=os.getenv("DB_NAME", "matchmaker"),
        llm=llm,
        matchmaking=matchmaking,
    )
