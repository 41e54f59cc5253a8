"""Configuration management for the Tumblr gateway."""

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from tgw.core.constants import (
    API_BASE_URL,
    DEFAULT_CALLBACK_URL,
    APIConstants,
    CacheTTL,
    CryptoConstants,
    SchedulerConstants,
)
from tgw.exceptions import ConfigurationError


class Config(BaseSettings):
    """Application configuration."""

    api_key: SecretStr | None = Field(
        default=None,
        alias="TGW_API_KEY",
        description="Tumblr consumer key, also sent as api_key on unauthenticated calls",
    )
    consumer_secret: SecretStr | None = Field(
        default=None,
        alias="TGW_CONSUMER_SECRET",
        description="Tumblr consumer secret used to sign OAuth requests",
    )
    encryption_secret: SecretStr | None = Field(
        default=None,
        alias="TGW_ENCRYPTION_SECRET",
        description="Secret for at-rest credential encryption (at least 32 characters)",
    )
    callback_url: str = Field(
        default=DEFAULT_CALLBACK_URL,
        alias="TGW_CALLBACK_URL",
        description="OAuth callback URL registered with the Tumblr application",
    )
    api_base_url: str = Field(default=API_BASE_URL, alias="TGW_API_BASE_URL")

    # Outbound pacing
    request_delay_ms: int = Field(
        default=int(SchedulerConstants.REQUEST_DELAY_MS),
        alias="TGW_REQUEST_DELAY_MS",
        ge=0,
        description="Minimum delay between upstream calls",
    )
    request_timeout: float = Field(
        default=float(APIConstants.REQUEST_TIMEOUT),
        alias="TGW_REQUEST_TIMEOUT",
        gt=0,
        description="Transport timeout in seconds",
    )

    # Response cache
    cache_ttl_seconds: int = Field(default=int(CacheTTL.DEFAULT), alias="TGW_CACHE_TTL_SECONDS", gt=0)
    cache_sweep_interval_seconds: int = Field(
        default=int(CacheTTL.SWEEP_INTERVAL),
        alias="TGW_CACHE_SWEEP_INTERVAL_SECONDS",
        gt=0,
    )
    likes_cache_offset_horizon: int = Field(
        default=0,
        alias="TGW_LIKES_CACHE_OFFSET_HORIZON",
        ge=0,
        description="Highest likes offset whose page may be served from cache",
    )
    likes_session_idle_seconds: int = Field(
        default=int(CacheTTL.LIKES_SESSION_IDLE),
        alias="TGW_LIKES_SESSION_IDLE_SECONDS",
        gt=0,
        description="Idle time after which a server-side likes browsing session is discarded",
    )

    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".tgw",
        alias="TGW_DATA_DIR",
        description="Directory for on-disk credential and usage stores",
    )
    log_level: str = Field(default="INFO", alias="TGW_LOG_LEVEL")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


def load_config() -> Config:
    """Load configuration from environment and .env file."""
    return Config()


def validate_startup(config: Config) -> None:
    """Fail fast when required runtime configuration is missing.

    Raises:
        ConfigurationError: If the API key or encryption secret is unusable

    """
    if not config.api_key or not config.api_key.get_secret_value():
        raise ConfigurationError("TGW_API_KEY is not set")

    if not config.encryption_secret:
        raise ConfigurationError("TGW_ENCRYPTION_SECRET is not set")

    if len(config.encryption_secret.get_secret_value()) < CryptoConstants.MIN_SECRET_LENGTH:
        raise ConfigurationError(
            f"TGW_ENCRYPTION_SECRET must be at least {int(CryptoConstants.MIN_SECRET_LENGTH)} characters"
        )
