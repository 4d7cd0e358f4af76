"""
Configuration management for the Clinic Waitlist service.

This module provides centralized configuration using Pydantic settings
for type-safe environment variable management.
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    clinic_name: str = Field(default="Academy Aesthetics Clinic", alias="CLINIC_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8080, alias="API_PORT")

    # Matching window for flexible-timing entries (days around the preferred date)
    flexible_window_days_before: int = Field(default=7, ge=0, alias="FLEXIBLE_WINDOW_DAYS_BEFORE")
    flexible_window_days_after: int = Field(default=14, ge=0, alias="FLEXIBLE_WINDOW_DAYS_AFTER")
    prefer_closest_time: bool = Field(default=False, alias="PREFER_CLOSEST_TIME")

    # Priority display
    priority_display_cap: int = Field(default=5, ge=1, alias="PRIORITY_DISPLAY_CAP")
    priority_high_threshold: int = Field(default=8, alias="PRIORITY_HIGH_THRESHOLD")
    priority_medium_threshold: int = Field(default=5, alias="PRIORITY_MEDIUM_THRESHOLD")

    # Reservation / waitlist lifecycle
    hold_duration_seconds: int = Field(default=300, ge=60, le=900, alias="HOLD_DURATION_SECONDS")
    default_entry_expiry_days: int = Field(default=30, ge=1, alias="DEFAULT_ENTRY_EXPIRY_DAYS")
    contact_response_hours: int = Field(default=0, ge=0, alias="CONTACT_RESPONSE_HOURS")

    # Expiry sweep
    enable_sweep_scheduler: bool = Field(default=True, alias="ENABLE_SWEEP_SCHEDULER")
    sweep_interval_minutes: int = Field(default=30, ge=1, alias="SWEEP_INTERVAL_MINUTES")
    seed_sample_slots: bool = Field(default=False, alias="SEED_SAMPLE_SLOTS")

    # Notification API Configuration (empty URL = log-only dispatcher)
    notification_api_url: str = Field(default="", alias="NOTIFICATION_API_URL")
    notification_api_timeout: int = Field(default=10, alias="NOTIFICATION_API_TIMEOUT")
    connection_pool_size: int = Field(default=20, alias="CONNECTION_POOL_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once,
    improving performance for repeated access.
    """
    return Settings()


# Bookable treatments - centralized configuration
TREATMENTS: List[dict] = [
    {
        "id": "skin_consultation",
        "name": "Skin Consultation",
        "duration_minutes": 20,
        "price": "40.00",
    },
    {
        "id": "anti_wrinkle",
        "name": "Anti-Wrinkle Injections",
        "duration_minutes": 30,
        "price": "180.00",
    },
    {
        "id": "lip_filler",
        "name": "Lip Filler",
        "duration_minutes": 45,
        "price": "250.00",
    },
    {
        "id": "dermal_filler",
        "name": "Dermal Filler",
        "duration_minutes": 60,
        "price": "320.00",
    },
    {
        "id": "chemical_peel",
        "name": "Chemical Peel",
        "duration_minutes": 45,
        "price": "120.00",
    },
    {
        "id": "microneedling",
        "name": "Microneedling",
        "duration_minutes": 60,
        "price": "200.00",
    },
    {
        "id": "training_model_session",
        "name": "Training Academy Model Session",
        "duration_minutes": 90,
        "price": "60.00",
    },
]

# Practitioners whose calendars feed the slot catalog (resource_ref, display name)
PRACTITIONERS: List[tuple] = [
    ("pr-hughes", "Dr. Emma Hughes"),
    ("pr-okafor", "Nurse Daniel Okafor"),
    ("pr-lindqvist", "Dr. Sara Lindqvist"),
]


def get_treatment_by_id(treatment_id: str) -> dict | None:
    """Get a treatment by its ID."""
    for treatment in TREATMENTS:
        if treatment["id"] == treatment_id:
            return treatment
    return None
