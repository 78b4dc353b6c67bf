# backend/etrans/config.py
from __future__ import annotations
import os


def _env_name() -> str:
    return os.environ.get("ETRANS_ENV") or os.environ.get("FLASK_ENV") or "development"


class Config:
    ENV_NAME = _env_name()
    IS_PRODUCTION = ENV_NAME == "production"

    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/etrans.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///etrans.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Credentials
    JWT_SECRET = os.environ.get("JWT_SECRET", "dev-jwt-secret-change-in-production")
    REFRESH_TOKEN_SECRET = os.environ.get("REFRESH_TOKEN_SECRET", "dev-refresh-secret-change-in-production")
    JWT_ALGORITHM = "HS256"
    ACCESS_TOKEN_MINUTES = int(os.environ.get("ACCESS_TOKEN_MINUTES", "15"))
    REFRESH_TOKEN_DAYS = int(os.environ.get("REFRESH_TOKEN_DAYS", "7"))

    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

    # Email (Resend). Empty key selects the null mailer.
    RESEND_API_KEY = os.environ.get("RESEND_API_KEY", "")
    FROM_EMAIL = os.environ.get("FROM_EMAIL", "noreply@e-trans.app")

    # AI (Gemini). Empty key disables the assistant.
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")

    # Flask-Limiter
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = (
        os.environ.get("LIMITER_STORAGE_URL")
        or os.environ.get("REDIS_URL")
        or "memory://"
    )
    RATELIMIT_DEFAULT = "100 per 15 minutes" if IS_PRODUCTION else "1000 per 15 minutes"
    AUTH_RATE_LIMIT = "5 per 15 minutes" if IS_PRODUCTION else "100 per 15 minutes"
    AI_RATE_LIMIT = "10 per minute"

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json" if IS_PRODUCTION else "console")


def validate_config(config) -> list[str]:
    """
    Return startup problems for the given config mapping.

    Production refuses development secrets; missing optional collaborators
    are reported as warnings by the caller.
    """
    problems = []
    if config.get("IS_PRODUCTION"):
        for key in ("SECRET_KEY", "JWT_SECRET", "REFRESH_TOKEN_SECRET"):
            if str(config.get(key, "")).startswith("dev-"):
                problems.append(f"{key} must be changed in production")
        if config.get("JWT_SECRET") == config.get("REFRESH_TOKEN_SECRET"):
            problems.append("JWT_SECRET and REFRESH_TOKEN_SECRET must differ")
    return problems
