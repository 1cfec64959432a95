"""
Shared configuration for DraftDesk core.
"""

from __future__ import annotations

import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("draftdesk")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(env_name: str, default: float) -> float:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_list(env_name: str) -> list[str]:
    return [item.strip() for item in os.environ.get(env_name, "").split(",") if item.strip()]


# Database settings
DB_BACKEND = os.environ.get("DB_BACKEND", "postgres").strip().lower()
SQLITE_PATH = os.environ.get("SQLITE_PATH", "/data/draftdesk.db")
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_BACKEND_EFFECTIVE = DB_BACKEND if DB_BACKEND in {"postgres", "sqlite"} else "postgres"

# Database initialization controls
AUTO_MIGRATE_ON_STARTUP = _get_bool("AUTO_MIGRATE_ON_STARTUP", True)

# Request/input limits
MAX_RESULT_LIMIT = _get_int("DRAFTDESK_MAX_RESULT_LIMIT", 100)
MAX_MESSAGE_LENGTH = _get_int("DRAFTDESK_MAX_MESSAGE_LENGTH", 20000)
MAX_SHORT_TEXT_LENGTH = _get_int("DRAFTDESK_MAX_SHORT_TEXT_LENGTH", 255)
MAX_TITLE_LENGTH = _get_int("DRAFTDESK_MAX_TITLE_LENGTH", 500)
MAX_INSTRUCTIONS_LENGTH = _get_int("DRAFTDESK_MAX_INSTRUCTIONS_LENGTH", 8000)
MAX_BODY_LENGTH = _get_int("DRAFTDESK_MAX_BODY_LENGTH", 500000)
MAX_METADATA_BYTES = _get_int("DRAFTDESK_MAX_METADATA_BYTES", 200000)
MAX_SECTION_ITEMS = _get_int("DRAFTDESK_MAX_SECTION_ITEMS", 200)

# Reference resolution
REFERENCE_CANDIDATE_LIMIT = _get_int("REFERENCE_CANDIDATE_LIMIT", 25)
REFERENCE_SUGGESTION_LIMIT = _get_int("REFERENCE_SUGGESTION_LIMIT", 5)

# Content generation collaborator
GENERATION_PROVIDER = os.environ.get("GENERATION_PROVIDER", "openai").strip().lower()
GENERATION_API_URL = os.environ.get(
    "GENERATION_API_URL",
    "https://api.openai.com/v1/chat/completions",
)
GENERATION_API_KEY = os.environ.get("GENERATION_API_KEY") or os.environ.get("OPENAI_API_KEY")
GENERATION_MODEL = os.environ.get("GENERATION_MODEL", "gpt-4o-mini")
GENERATION_TEMPERATURE = _get_float("GENERATION_TEMPERATURE", 0.6)
GENERATION_TIMEOUT_SECONDS = _get_float("GENERATION_TIMEOUT_SECONDS", 60.0)
GENERATION_RETRY_MAX = _get_int("GENERATION_RETRY_MAX", 2)
GENERATION_RETRY_BACKOFF_SECONDS = _get_float("GENERATION_RETRY_BACKOFF_SECONDS", 0.5)
GENERATION_RETRY_JITTER_SECONDS = _get_float("GENERATION_RETRY_JITTER_SECONDS", 0.25)
GENERATION_FAILURE_THRESHOLD = _get_int("GENERATION_FAILURE_THRESHOLD", 5)
GENERATION_COOLDOWN_SECONDS = _get_int("GENERATION_COOLDOWN_SECONDS", 60)

# Workspace cache
WORKSPACE_CACHE_BACKEND = os.environ.get("WORKSPACE_CACHE_BACKEND", "memory").strip().lower()
WORKSPACE_CACHE_MAX_ENTRIES = _get_int("WORKSPACE_CACHE_MAX_ENTRIES", 500)
WORKSPACE_CACHE_KEY_PREFIX = os.environ.get("WORKSPACE_CACHE_KEY_PREFIX", "draftdesk:workspace:")
REDIS_URL = os.environ.get("REDIS_URL")

# MCP agent surface
REQUIRE_MCP_AUTH = _get_bool("REQUIRE_MCP_AUTH", True)

# HTTP surface
TRUSTED_HOSTS = _get_list("TRUSTED_HOSTS")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
CORS_ALLOWED_ORIGINS = _get_list("CORS_ALLOWED_ORIGINS") or sorted({FRONTEND_URL, "http://localhost:3000"})


def validate_and_prepare_config() -> None:
    """Validate configuration and apply derived settings at startup."""
    global DATABASE_URL, DB_BACKEND_EFFECTIVE

    errors = []
    if DB_BACKEND not in {"postgres", "sqlite"}:
        errors.append("DB_BACKEND must be 'postgres' or 'sqlite'")

    if not DATABASE_URL:
        if DB_BACKEND == "sqlite":
            if not SQLITE_PATH:
                errors.append("SQLITE_PATH environment variable is required for sqlite")
            else:
                DATABASE_URL = f"sqlite:///{SQLITE_PATH}"
        else:
            errors.append("DATABASE_URL environment variable is required")
    else:
        url_lower = DATABASE_URL.lower()
        is_sqlite_url = url_lower.startswith("sqlite")
        if DB_BACKEND == "sqlite" and not is_sqlite_url:
            errors.append("DATABASE_URL must be a sqlite URL when DB_BACKEND=sqlite")
        if DB_BACKEND == "postgres" and is_sqlite_url:
            errors.append("DATABASE_URL must be a postgres URL when DB_BACKEND=postgres")

    DB_BACKEND_EFFECTIVE = DB_BACKEND if DB_BACKEND in {"postgres", "sqlite"} else "postgres"

    if GENERATION_PROVIDER not in {"openai", "none"}:
        errors.append("GENERATION_PROVIDER must be 'openai' or 'none'")
    if GENERATION_PROVIDER == "openai" and not GENERATION_API_KEY:
        logger.warning("GENERATION_API_KEY is not set; section patches will fail until configured.")

    if WORKSPACE_CACHE_BACKEND not in {"memory", "redis"}:
        errors.append("WORKSPACE_CACHE_BACKEND must be 'memory' or 'redis'")
    if WORKSPACE_CACHE_BACKEND == "redis" and not REDIS_URL:
        errors.append("REDIS_URL is required when WORKSPACE_CACHE_BACKEND=redis")
    if WORKSPACE_CACHE_MAX_ENTRIES <= 0:
        errors.append("WORKSPACE_CACHE_MAX_ENTRIES must be positive")

    if REFERENCE_CANDIDATE_LIMIT <= 0 or REFERENCE_SUGGESTION_LIMIT <= 0:
        errors.append("REFERENCE_CANDIDATE_LIMIT and REFERENCE_SUGGESTION_LIMIT must be positive")

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))
