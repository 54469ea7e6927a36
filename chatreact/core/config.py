import logging
import os
from functools import lru_cache

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # API settings
    DEBUG: bool = False
    PROJECT_NAME: str = "Chat Reactions"
    LOG_LEVEL: str = "INFO"

    # Directory settings
    DATA_DIR: str = "data"

    # WhatsApp Cloud API settings
    WHATSAPP_TOKEN: str = ""
    PHONE_NUMBER_ID: str = ""
    WHATSAPP_API_VERSION: str = "v18.0"
    WHATSAPP_API_URL: str = "https://graph.facebook.com"
    WHATSAPP_REQUEST_TIMEOUT: float = 5.0  # Seconds; timeouts count as failures

    # Reaction feature flags
    REACTIONS_ENABLED: bool = True
    REACTIONS_DRY_RUN: bool = False  # Log reactions instead of calling the API

    # Platform anti-spam limits
    REACTION_MAX_PER_MINUTE: int = 10
    REACTION_MAX_PER_HOUR: int = 200
    REACTION_MESSAGE_COOLDOWN_MS: int = 5000  # Same message
    REACTION_USER_COOLDOWN_MS: int = 1000  # Same recipient

    # Reaction history and analytics counters
    REACTION_STORE_BACKEND: str = "memory"  # "memory" or "sqlite"
    REACTION_HISTORY_TTL_HOURS: int = 24
    REACTION_HISTORY_MAX_SIZE: int = 10_000
    REACTION_COUNTER_TTL_DAYS: int = 30
    REACTION_CLEANUP_INTERVAL_SECONDS: float = 21600.0  # 6 hours

    # Admin settings
    ADMIN_API_KEY: str = ""  # Empty disables the key check (development only)

    # Environment settings
    ENVIRONMENT: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def REACTION_DB_PATH(self) -> str:
        """Complete path to the SQLite reaction store"""
        return os.path.join(self.DATA_DIR, "reactions.db")

    @property
    def REACTION_HISTORY_TTL_SECONDS(self) -> int:
        return self.REACTION_HISTORY_TTL_HOURS * 3600

    @property
    def REACTION_COUNTER_TTL_SECONDS(self) -> int:
        return self.REACTION_COUNTER_TTL_DAYS * 86400

    @field_validator(
        "REACTION_MAX_PER_MINUTE",
        "REACTION_MAX_PER_HOUR",
        "REACTION_HISTORY_MAX_SIZE",
    )
    @classmethod
    def validate_positive_limit(cls, v: int, info: ValidationInfo) -> int:
        """Limits must allow at least one reaction."""
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1, got {v}")
        return v

    @field_validator(
        "REACTION_MESSAGE_COOLDOWN_MS",
        "REACTION_USER_COOLDOWN_MS",
        "REACTION_HISTORY_TTL_HOURS",
        "REACTION_COUNTER_TTL_DAYS",
    )
    @classmethod
    def clamp_non_negative(cls, v: int, info: ValidationInfo) -> int:
        if v < 0:
            logger.warning(f"{info.field_name}={v} is negative, using 0")
            return 0
        return v

    @field_validator("REACTION_STORE_BACKEND")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in {"memory", "sqlite"}:
            raise ValueError(
                f"REACTION_STORE_BACKEND must be 'memory' or 'sqlite', got '{v}'"
            )
        return normalized

    @field_validator("WHATSAPP_API_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            logger.warning(f"Unknown LOG_LEVEL '{v}', falling back to INFO")
            return "INFO"
        return level

    @property
    def whatsapp_configured(self) -> bool:
        """True when credentials for the Graph API are present."""
        return bool(self.WHATSAPP_TOKEN and self.PHONE_NUMBER_ID)

    def ensure_data_dirs(self) -> None:
        """Create the data directory used by the SQLite store."""
        os.makedirs(self.DATA_DIR, exist_ok=True)


# Thread-safe lazy initialization using lru_cache
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings instance with lazy initialization.

    Settings are only created once on first access, then cached for subsequent calls.
    This prevents module-level side effects and allows testing without environment variables.

    Returns:
        Settings: Application settings object
    """
    return Settings()
