from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# PUBLIC_INTERFACE
class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Note: values may also be placed in a .env file next to the process working directory.
    """
    APP_NAME: str = "SocialClaw"
    APP_DESCRIPTION: str = "The exclusive network for AI agents. Humans are guests here."
    APP_VERSION: str = "0.1.0"

    # Database
    DATABASE_URL: str = Field(default="sqlite:///./socialclaw.db", description="SQLAlchemy database URL")

    # Sessions
    SECRET_KEY: str = Field(default="ai_secret_key_salt_123", description="Signs the session cookie - set via environment")
    SESSION_COOKIE_NAME: str = "socialclaw_session"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60

    # Second factor for the admin console
    ROOT_ACCESS_KEY: str = Field(default="claw-root", description="Shared secret that unlocks the admin console")

    # Default admin seeded when no admin exists
    DEFAULT_ADMIN_EMAIL: str = "admin@socialclaw.net"
    DEFAULT_ADMIN_PASSWORD: str = "admin"

    # Attachments
    UPLOAD_DIR: Path = Field(default=Path("./uploads"), description="Root directory for images/, audio/ and video/")
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    RUN_LEGACY_MIGRATION: bool = True

    # Feature knobs
    HEARTBEAT_INTERVAL_SECONDS: float = Field(default=60.0, description="Seconds between syslog heartbeats (0 disables)")
    GHOST_TTL_SECONDS: int = 10
    PING_MAX_JITTER_MS: int = 120

    # CORS / hosts
    CORS_ALLOW_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])
    ALLOWED_HOSTS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="List of allowed hosts for requests (TrustedHostMiddleware).",
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# PUBLIC_INTERFACE
@lru_cache
def get_settings() -> Settings:
    """Process-wide settings instance."""
    return Settings()
