"""Application configuration."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings, overridable through ``COWORK_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COWORK_",
        env_file=".env",
        extra="ignore",
    )

    # Default amenity availability (used when an amenity document omits it)
    DEFAULT_START_HOUR: int = 8
    DEFAULT_END_HOUR: int = 18
    DEFAULT_AVAILABLE_DAYS: list[int] = [1, 2, 3, 4, 5]  # 0 = Sunday
    DEFAULT_SLOT_DURATION: int = 30
    DEFAULT_TIMEZONE: str = "UTC"

    # Recurring bookings
    RECURRENCE_SAFETY_CAP: int = 999

    # Housekeeping
    AUTO_CHECKOUT_GRACE_MINUTES: int = 60
    STALE_BOOKING_DAYS: int = 30
    REMINDER_LEAD_HOURS: int = 24
    REMINDER_WINDOW_HOURS: int = 1

    LOG_LEVEL: str = "INFO"


settings = Settings()
