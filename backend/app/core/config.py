"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from backend.app.core.config import get_settings
    settings = get_settings()
    print(settings.TRIGGER_COOLDOWN_SECONDS)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "Disaster Alert Dispatch"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Trigger evaluation ──
    TRIGGER_COOLDOWN_SECONDS: float = 900.0  # min gap between fires of one condition
    SEED_SAMPLE_TRIGGERS: bool = True

    # ── Alert lifecycle ──
    AUTO_DISPATCH_ENABLED: bool = True
    AUTO_ALERT_TTL_HOURS: float = 12.0
    EXPIRY_SWEEP_INTERVAL_SECONDS: float = 30.0

    # Alert category → ordered channel ids, consulted for auto-dispatch only
    CATEGORY_CHANNELS: Dict[str, List[str]] = {
        "typhoon":    ["social-media", "sms", "radio", "sirens"],
        "earthquake": ["sirens", "sms", "radio", "social-media"],
        "flood":      ["sms", "social-media", "radio", "loudspeaker"],
        "tsunami":    ["sirens", "sms", "radio", "loudspeaker", "social-media"],
        "fire":       ["sms", "loudspeaker", "social-media"],
        "landslide":  ["sms", "radio", "social-media"],
        "heat":       ["social-media", "email"],
        "general":    ["social-media", "sms", "email"],
    }

    # ── Channel dispatch ──
    CHANNEL_TIMEOUT_SECONDS: float = 10.0
    CHANNEL_TIMEOUTS: Dict[str, float] = {
        "sirens": 20.0,  # siren controllers acknowledge slowly
        "radio": 15.0,
    }

    # Provider per channel: "simulation" reports the configured audience,
    # anything else posts to the channel's endpoint.
    SMS_PROVIDER: str = "simulation"
    SMS_GATEWAY_URL: Optional[str] = None
    SMS_API_KEY: Optional[str] = None
    SMS_REGISTERED_RECIPIENTS: int = 5000

    SOCIAL_MEDIA_PROVIDER: str = "simulation"
    SOCIAL_MEDIA_WEBHOOK_URL: Optional[str] = None
    SOCIAL_MEDIA_FOLLOWERS: int = 4300

    EMAIL_PROVIDER: str = "simulation"  # simulation | smtp
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    EMAIL_SENDER: str = "alerts@mdrrmo.local"
    EMAIL_SUBSCRIBERS: List[str] = []
    EMAIL_SIMULATED_SUBSCRIBERS: int = 800

    RADIO_PROVIDER: str = "simulation"
    RADIO_API_URL: Optional[str] = None
    RADIO_LISTENERS: int = 15000

    PUBLIC_ADDRESS_PROVIDER: str = "simulation"
    PUBLIC_ADDRESS_URL: Optional[str] = None
    PUBLIC_ADDRESS_COVERAGE: int = 3000

    SIREN_PROVIDER: str = "simulation"
    SIREN_API_URL: Optional[str] = None
    SIREN_COVERAGE: int = 12000

    # ── Persistence (audit continuity across restarts) ──
    PERSISTENCE_ENABLED: bool = False
    DATABASE_URL: str = "sqlite+aiosqlite:///./disaster_alerts.db"
    DATABASE_ECHO: bool = False  # log SQL queries

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    def channel_timeout(self, channel_id: str) -> float:
        return self.CHANNEL_TIMEOUTS.get(channel_id, self.CHANNEL_TIMEOUT_SECONDS)


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
