from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEEPGRAM_LISTEN_URL = "wss://api.deepgram.com/v1/listen"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Secrets
    deepgram_api_key: str = Field(
        default="",
        alias="DEEPGRAM_API_KEY",
        description="API key for the live transcription service",
    )
    generative_api_key: str = Field(
        default="",
        alias="API_KEY",
        description="API key for the generative image API used by the HTTP surface",
    )

    # Upstream transcription service
    deepgram_url: str = Field(
        default=DEEPGRAM_LISTEN_URL,
        alias="DEEPGRAM_URL",
        description="WebSocket URL of the live listen endpoint",
    )
    keepalive_interval_seconds: float = Field(
        default=10.0,
        alias="KEEPALIVE_INTERVAL_SECONDS",
        description="Seconds between keepalive frames sent on an open upstream link",
    )
    upstream_open_timeout_seconds: float = Field(
        default=10.0,
        alias="UPSTREAM_OPEN_TIMEOUT_SECONDS",
        description="Handshake timeout passed to the websocket client",
    )

    # HTTP server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    static_dir: str = Field(
        default="public",
        alias="STATIC_DIR",
        description="Directory served at / (index.html plus assets)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are read from environment variables and .env file once,
    then cached for the lifetime of the process.
    """
    return Settings()


def warn_if_missing_api_keys(settings: Settings) -> None:
    """Log a warning for each secret that is not configured.

    Should be called at application startup.
    """
    import structlog

    logger = structlog.get_logger()
    if not settings.deepgram_api_key:
        logger.warning(
            "deepgram_api_key_missing",
            msg="Set DEEPGRAM_API_KEY; upstream links will be rejected without it",
        )
    if not settings.generative_api_key:
        logger.warning(
            "generative_api_key_missing",
            msg="API_KEY is not set",
        )
