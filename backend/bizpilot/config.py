# backend/bizpilot/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bizpilot.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bizpilot.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    CORS_ALLOWED_ORIGINS = {
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    }

    # Business defaults applied when a business is created without settings
    DEFAULT_HOURLY_RATE = os.environ.get("DEFAULT_HOURLY_RATE", "15")
    DEFAULT_TARGET_MARGIN = os.environ.get("DEFAULT_TARGET_MARGIN", "40")
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "ZAR")

    # Average margin reported by the context snapshot when there are no products
    SNAPSHOT_DEFAULT_MARGIN = os.environ.get("SNAPSHOT_DEFAULT_MARGIN", "40")

    # Stock may go below zero unless this is switched off
    ALLOW_NEGATIVE_STOCK = _env_bool("ALLOW_NEGATIVE_STOCK", True)

    TRANSACTION_PAGE_LIMIT = int(os.environ.get("TRANSACTION_PAGE_LIMIT", "200"))

    # Text-completion backend for the assistant (disabled when URL is empty)
    AI_COMPLETION_URL = os.environ.get("AI_COMPLETION_URL", "")
    AI_COMPLETION_API_KEY = os.environ.get("AI_COMPLETION_API_KEY", "")
    AI_COMPLETION_TIMEOUT = float(os.environ.get("AI_COMPLETION_TIMEOUT", "30"))
