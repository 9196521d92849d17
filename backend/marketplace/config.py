# backend/marketplace/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/marketplace.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///marketplace.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seed values for the sales settings row (fractions, e.g. "0.07")
    DEFAULT_PST_RATE = os.environ.get("DEFAULT_PST_RATE", "0")
    DEFAULT_GST_RATE = os.environ.get("DEFAULT_GST_RATE", "0")

    # Reject POS lines for items that are not listed in the sale session
    ENFORCE_SESSION_CURATION = _env_flag("ENFORCE_SESSION_CURATION", "true")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
