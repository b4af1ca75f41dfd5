"""EventSub client configuration"""

import logging
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}

# Project root .env, independent of the working directory
ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class EventSubSettings(BaseSettings):
    """EventSub webhook settings"""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch application
    client_id: str = Field(..., description="Twitch application Client ID")
    client_secret: str = Field(
        ..., description="Twitch application Client Secret (not the webhook secret)"
    )

    # Webhook transport
    webhook_secret: str = Field(..., description="Secret Twitch uses to sign callbacks")
    webhook_url: str = Field(..., description="Public EventSub callback URL")

    # Twitch endpoints
    helix_url: str = Field(default="https://api.twitch.tv/helix", description="Helix base URL")
    oauth_url: str = Field(default="https://id.twitch.tv/oauth2", description="OAuth base URL")

    # Timing
    verification_timeout: float = Field(
        default=10.0, gt=0, description="Seconds to wait for callback verification"
    )
    token_validate_interval: float = Field(
        default=3600.0, gt=0, description="Seconds between app token validations"
    )
    message_max_age: float = Field(
        default=600.0, gt=0, description="Callbacks older than this (seconds) are ignored"
    )
    http_timeout: float = Field(default=10.0, gt=0, description="Outbound HTTP timeout")

    # Deduplication (0 = unbounded)
    handled_events_maxsize: int = Field(default=0, ge=0, description="Max remembered message IDs")
    handled_events_ttl: float = Field(default=3600.0, gt=0, description="Message ID TTL (seconds)")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("webhook_secret")
    @classmethod
    def validate_webhook_secret(cls, v: str) -> str:
        """Twitch requires a secret of 10 to 100 characters"""
        if not 10 <= len(v) <= 100:
            raise ValueError("WEBHOOK_SECRET must be between 10 and 100 characters")
        return v

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: str) -> str:
        """Twitch only delivers to HTTPS on port 443"""
        parsed = urlparse(v)
        if parsed.scheme == "https":
            return v
        if parsed.scheme == "http" and parsed.hostname in _LOCAL_HOSTS:
            logger.warning(f"Using plain HTTP webhook URL for local testing: {v}")
            return v
        raise ValueError("WEBHOOK_URL must be an https:// URL")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def webhook_path(self) -> str:
        """Route path the callback URL points at"""
        return urlparse(self.webhook_url).path or "/"


@lru_cache
def get_settings() -> EventSubSettings:
    """Get cached settings instance"""
    return EventSubSettings()  # type: ignore[call-arg]
