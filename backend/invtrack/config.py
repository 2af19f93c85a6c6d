# backend/invtrack/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # SQLite DB stored in backend/instance/invtrack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///invtrack.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Calendar day boundaries for daily snapshots
    INVENTORY_TIMEZONE = os.environ.get("INVENTORY_TIMEZONE", "UTC")

    # Stock may not go below zero unless explicitly allowed
    ALLOW_NEGATIVE_STOCK = _env_bool("ALLOW_NEGATIVE_STOCK", False)

    # Persistence-layer retry for lock contention / lost optimistic races
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
    DB_RETRY_BACKOFF_SECONDS = float(os.environ.get("DB_RETRY_BACKOFF_SECONDS", "0.1"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Browser origins allowed to call the API (comma separated)
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    )
