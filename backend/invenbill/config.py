# backend/invenbill/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/invenbill.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///invenbill.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Threshold applied to new products that do not specify one
    LOW_STOCK_DEFAULT = int(os.environ.get("INVENBILL_LOW_STOCK_DEFAULT", "10"))

    # Attempts for retrying lock/stale-data failures
    RETRY_ATTEMPTS = int(os.environ.get("INVENBILL_RETRY_ATTEMPTS", "3"))
