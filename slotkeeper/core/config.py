# slotkeeper/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

from .constants import (
    DEFAULT_BUSINESS_TIMEZONE,
    DEFAULT_HORIZON_DAYS,
    LATE_BOOKING_CUTOFF_HOUR,
    REMINDER_WINDOW_HOURS,
    SCHEDULED_RUN_TIME_LIMIT_SECONDS,
    SWEEP_MAX_CONCURRENCY,
)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///./slotkeeper.db",
        alias="DATABASE_URL",
        description="SQLAlchemy URL of the booking document store",
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Queue
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    celery_broker_url: str | None = Field(default=None, alias="CELERY_BROKER_URL")
    celery_result_backend: str | None = Field(default=None, alias="CELERY_RESULT_BACKEND")

    # Availability engine
    business_timezone: str = Field(
        default=DEFAULT_BUSINESS_TIMEZONE,
        alias="BUSINESS_TIMEZONE",
        description="Wall-clock timezone used for day boundaries and the late-booking cutoff",
    )
    slot_horizon_days: int = Field(default=DEFAULT_HORIZON_DAYS, alias="SLOT_HORIZON_DAYS", ge=1)
    late_booking_cutoff_hour: int = Field(
        default=LATE_BOOKING_CUTOFF_HOUR, alias="LATE_BOOKING_CUTOFF_HOUR", ge=0, le=24
    )

    # Scheduled runs
    sweep_max_concurrency: int = Field(
        default=SWEEP_MAX_CONCURRENCY, alias="SWEEP_MAX_CONCURRENCY", ge=1
    )
    scheduled_run_time_limit_seconds: int = Field(
        default=SCHEDULED_RUN_TIME_LIMIT_SECONDS, alias="SCHEDULED_RUN_TIME_LIMIT_SECONDS"
    )
    reminder_window_hours: int = Field(default=REMINDER_WINDOW_HOURS, alias="REMINDER_WINDOW_HOURS")

    # Push delivery (Expo)
    expo_push_url: str = Field(
        default="https://exp.host/--/api/v2/push/send",
        alias="EXPO_PUSH_URL",
    )
    expo_access_token: SecretStr | None = Field(default=None, alias="EXPO_ACCESS_TOKEN")
    expo_timeout_seconds: float = Field(default=15.0, alias="EXPO_TIMEOUT_SECONDS")

    # Email delivery (Resend)
    resend_api_key: SecretStr | None = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="API key for Resend provider (emails are skipped when unset)",
    )
    email_from: str = Field(default="Slotkeeper <noreply@slotkeeper.app>", alias="EMAIL_FROM")
    email_reply_to: str | None = Field(default="support@slotkeeper.app", alias="EMAIL_REPLY_TO")
    app_url: str = Field(default="https://slotkeeper.app", alias="APP_URL")

    # Administrative trigger surface
    admin_api_token: SecretStr | None = Field(default=None, alias="ADMIN_API_TOKEN")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("business_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def broker_url(self) -> str:
        """Broker URL with CELERY_BROKER_URL taking priority over REDIS_URL."""
        url = self.celery_broker_url or self.redis_url
        if not any(url.endswith(f"/{i}") for i in range(16)):
            url = f"{url}/0"
        return url

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
