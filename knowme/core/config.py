from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from knowme.core.version import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    PORT: int = 8000
    APP_NAME: str = "KnowMe"
    APP_ENV: Literal["development", "production", "test"] = "production"
    HOST_NAME: str = "http://localhost:8000"

    # "memory" keeps everything in-process and is lost on restart
    STORE_BACKEND: Literal["memory", "redis"] = "redis"
    REDIS_URL: str = "redis://redis:6379/0"
    # Maximum number of connections Redis client will open per process
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_KEY_PREFIX: str = "knowme:"

    SESSION_TTL_SECONDS: int = 60 * 60 * 24 * 30  # 30 days
    PASSWORD_SALT: str = "change-me"

    # Delay between a swipe commit and its effect, lets the exit animation play
    SWIPE_SETTLE_MS: int = 200
    # Idle deck sessions are dropped after this many seconds
    DECK_SESSION_TTL_SECONDS: int = 1800
    DECK_SESSION_MAX: int = 5000

    # AI
    DEFAULT_GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_API_KEY: str | None = None


settings = Settings()

APP_VERSION = __version__
