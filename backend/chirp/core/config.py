from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    PROJECT_NAME: str = "Chirp Notifications API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str = "sqlite:///./chirp.db"
    SECRET_KEY: str = "changeme"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    JWT_ALGORITHM: str = "HS256"
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Realtime socket delivery
    WS_SEND_TIMEOUT: float = 5.0

    # Redis configuration
    REDIS_URL: str = "redis://localhost:6379/0"
    NOTIFICATIONS_CHANNEL: str = "notifications"
    REDIS_RELAY_ENABLED: bool = False

    # Celery configuration
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Web Push (VAPID) configuration
    VAPID_PUBLIC_KEY: str = ""
    VAPID_PRIVATE_KEY: str = ""
    VAPID_CLAIMS_EMAIL: str = "mailto:admin@example.com"
    WEB_PUSH_TIMEOUT: float = 10.0
    WEB_PUSH_TTL: int = 86400
    PUSH_FALLBACK_ENABLED: bool = True

    # Who hears about a reply to a comment
    REPLY_NOTIFICATION_POLICY: Literal["post_author", "parent_comment_author", "both"] = "both"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: List[str] | str) -> List[str]:
        """Allow both comma-separated strings and list inputs."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("VAPID_CLAIMS_EMAIL")
    @classmethod
    def ensure_mailto(cls, value: str) -> str:
        """VAPID `sub` claims must be a mailto: or https: URI."""
        if value and not value.startswith(("mailto:", "https:")):
            return f"mailto:{value}"
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
