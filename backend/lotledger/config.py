# backend/lotledger/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/lotledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///lotledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SESSION_ABSOLUTE_TIMEOUT_HOURS = _env_int("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)
    SESSION_IDLE_TIMEOUT_HOURS = _env_int("SESSION_IDLE_TIMEOUT_HOURS", 2)

    # Lot numbering: "{prefix}{n:0{pad}d}", prefix overridable per tenant
    DEFAULT_LOT_PREFIX = os.environ.get("DEFAULT_LOT_PREFIX", "LOT-")
    LOT_NUMBER_PAD = _env_int("LOT_NUMBER_PAD", 4)

    # Lock contention handling for the sale critical section
    SALE_LOCK_ATTEMPTS = _env_int("SALE_LOCK_ATTEMPTS", 3)
    SALE_LOCK_BACKOFF_SECONDS = float(os.environ.get("SALE_LOCK_BACKOFF_SECONDS", "0.1"))

    CORS_ALLOWED_ORIGINS = os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    )

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
