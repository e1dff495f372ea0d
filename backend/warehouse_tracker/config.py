# backend/warehouse_tracker/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/warehouse.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///warehouse.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Storage grid: aisles x racks x levels, ids look like "A1-L1"
    LOCATION_AISLES = os.environ.get("LOCATION_AISLES", "ABCDEFGHIJ")
    LOCATION_RACKS = int(os.environ.get("LOCATION_RACKS", "8"))
    LOCATION_LEVELS = int(os.environ.get("LOCATION_LEVELS", "6"))
    SEED_LOCATIONS_ON_STARTUP = _env_bool("SEED_LOCATIONS_ON_STARTUP")

    NOTIFICATION_BUFFER_SIZE = int(os.environ.get("NOTIFICATION_BUFFER_SIZE", "100"))

    ACTIVITY_DEFAULT_LIMIT = int(os.environ.get("ACTIVITY_DEFAULT_LIMIT", "100"))
    ACTIVITY_MAX_LIMIT = int(os.environ.get("ACTIVITY_MAX_LIMIT", "500"))

    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")
