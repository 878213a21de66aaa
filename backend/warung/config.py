# backend/warung/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Local durable cache, SQLite by default (backend/instance/warung.sqlite3)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///warung.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Remote replica for cross-device sync. Unset means local-only (offline) mode.
    REMOTE_DATABASE_URL = os.environ.get("REMOTE_DATABASE_URL") or None

    # "sql" (default) or "memory" (single-process demo / tests)
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "sql")

    # Compare-and-swap retry policy for ledger read-modify-write cycles
    CAS_RETRY_ATTEMPTS = int(os.environ.get("CAS_RETRY_ATTEMPTS", "3"))
    CAS_RETRY_BACKOFF = float(os.environ.get("CAS_RETRY_BACKOFF", "0.05"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    REMOTE_DATABASE_URL = None
    CAS_RETRY_BACKOFF = 0.0
    LOG_LEVEL = "DEBUG"
