"""
Application configuration — environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv(BASE_DIR / ".env")


def _reminder_schedule() -> dict[str, str]:
    """Slot -> "HH:MM". Override one slot with e.g. REMINDER_TIME_NIGHT=21:00."""
    defaults = {
        "morning": "08:00",
        "lunch": "12:15",
        "evening": "19:00",
        "recovery": "20:00",
        "night": "21:30",
        "final": "23:15",
        "deadline": "23:50",
    }
    return {
        slot: os.environ.get(f"REMINDER_TIME_{slot.upper()}", default)
        for slot, default in defaults.items()
    }


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    DATABASE = os.environ.get("DATABASE_PATH", str(BASE_DIR / "it_streak.db"))

    # Session security
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 86400 * 30

    # Local calendar used for streak days ("" = server local time)
    APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "")
    DEFAULT_DAILY_GOAL = int(os.environ.get("DEFAULT_DAILY_GOAL", "5"))

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Push delivery (Expo)
    EXPO_PUSH_URL = os.environ.get("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")
    EXPO_ACCESS_TOKEN = os.environ.get("EXPO_ACCESS_TOKEN", "")
    PUSH_BATCH_SIZE = int(os.environ.get("PUSH_BATCH_SIZE", "100"))
    PUSH_TIMEOUT_SECONDS = float(os.environ.get("PUSH_TIMEOUT_SECONDS", "10"))

    # Reminder scheduling
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    REMINDER_SCHEDULE = _reminder_schedule()
    CRON_SECRET = os.environ.get("CRON_SECRET", "")

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")
    SESSION_COOKIE_SECURE = True

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if not 1 <= cls.PUSH_BATCH_SIZE <= 100:
            errors.append("PUSH_BATCH_SIZE must be between 1 and 100.")

        if not cls.CRON_SECRET:
            warnings.warn("CRON_SECRET is not set — /api/cron endpoints will reject every call.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    SCHEDULER_ENABLED = False


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
