"""
Config classes, chosen with APP_CONFIG:

  roadway.config.ProdConfig   default; startup refuses weak secrets or DEBUG
  roadway.config.DevConfig    local SPA development
  roadway.config.TestConfig   pytest (limiter off, short classifier timeout)

Every value can be overridden from the environment or a .env file. Rate
limits use Flask-Limiter RATELIMIT_* keys plus per-endpoint *_RATE_LIMIT strings.
"""

from __future__ import annotations
import os
import secrets


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


class BaseConfig:
    # Random per-process fallback keeps dev/test off an empty key; prod requires FLASK_SECRET_KEY
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    # JSON API: keep camelCase keys in the order the services build them
    JSON_SORT_KEYS = False

    # Classifier providers (LiteLLM)
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")

    # Hosted store
    SUPABASE_URL = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # Moderation
    MODERATION_ENABLED = _env_flag("MODERATION_ENABLED")
    MODERATION_TIMEOUT_SECONDS = float(os.getenv("MODERATION_TIMEOUT_SECONDS", "8"))
    MODERATION_MAX_RETRIES = int(os.getenv("MODERATION_MAX_RETRIES", "1"))
    TRUST_THRESHOLD = int(os.getenv("TRUST_THRESHOLD", "5"))
    LINK_VERDICT_CACHE_SECONDS = int(os.getenv("LINK_VERDICT_CACHE_SECONDS", "3600"))

    # Notifications
    NOTIFICATION_DEDUP_MINUTES = int(os.getenv("NOTIFICATION_DEDUP_MINUTES", "60"))

    # Flask-Limiter v3
    RATELIMIT_ENABLED = _env_flag("RATELIMIT_ENABLED")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "60 per minute; 2000 per day")
    POST_SUBMIT_RATE_LIMIT = os.getenv("POST_SUBMIT_RATE_LIMIT", "10 per minute; 200 per day")
    CHECK_LINK_RATE_LIMIT = os.getenv("CHECK_LINK_RATE_LIMIT", "20 per minute")

    # Misc
    PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")


class ProdConfig(BaseConfig):
    """Production (the default)."""


class DevConfig(BaseConfig):
    """Local development against the SPA dev server."""
    ENV = "development"
    DEBUG = True
    PREFERRED_URL_SCHEME = "http"
    POST_SUBMIT_RATE_LIMIT = "100 per minute"


class TestConfig(BaseConfig):
    """pytest."""
    TESTING = True
    DEBUG = True
    RATELIMIT_ENABLED = False
    MODERATION_ENABLED = True
    MODERATION_TIMEOUT_SECONDS = 1.0
    MODERATION_MAX_RETRIES = 0
    TRUST_THRESHOLD = 5
    NOTIFICATION_DEDUP_MINUTES = 60
