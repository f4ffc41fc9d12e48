"""
Application settings loaded from environment variables and `.env`.
"""

import logging
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Values shipped in .env.example that mean "not configured"
PLACEHOLDER_VALUES = {"", "your_telegram_bot_token_here", "your_telegram_chat_id_here"}


class Settings(BaseSettings):
    """Application settings."""

    # API access
    api_code: Optional[str] = Field(default=None, description="Pre-shared code expected in X-API-Code")
    cors_origins: str = Field(default="*", description="Allowed CORS origins, comma separated")

    # Database
    database_url: str = Field(default="sqlite:///./bhumi.db", description="SQLAlchemy database URL")

    # Site
    domain: str = Field(default="https://bhumiconsultancy.in", description="Canonical site URL")
    upstream_api_url: str = Field(default="http://127.0.0.1:8000", description="API server used by the proxy")

    # Telegram notifications
    telegram_bot_token: Optional[str] = Field(default=None, description="Telegram bot token")
    telegram_chat_id: Optional[str] = Field(default=None, description="Chat that receives contact notifications")
    notification_min_interval: float = Field(default=2.0, ge=0, description="Seconds between notifications")
    notification_max_retries: int = Field(default=3, ge=1, description="Telegram send attempts")
    notification_retry_delay: float = Field(default=1.0, ge=0, description="First retry delay in seconds")
    timezone: str = Field(default="Asia/Kolkata", description="Timezone used in notification texts")

    # Sitemap
    sitemap_cache_ttl: float = Field(default=3600.0, ge=0, description="Sitemap cache lifetime in seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(default=Path("./logs/api.log"), description="Log file path")

    @field_validator("telegram_bot_token", "telegram_chat_id", "api_code")
    @classmethod
    def blank_to_none(cls, v):
        """Treats placeholders and empty strings as unset."""
        if v is None:
            return None
        v = str(v).strip()
        return None if v in PLACEHOLDER_VALUES else v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validates the logging level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("domain", "upstream_api_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @property
    def cors_origins_list(self) -> List[str]:
        """Returns the allowed CORS origins."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    class Config:
        """Settings configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Returns the process-wide settings object."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings_from_file(env_file: str = ".env") -> Settings:
    """
    Loads settings from the given env file.

    Args:
        env_file: Path to the env file

    Returns:
        Settings: Settings object
    """
    return Settings(_env_file=env_file)


def setup_logging(settings: Settings) -> None:
    """
    Configures root logging with a console handler and, when set, a log file.

    Args:
        settings: Application settings
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def create_env_example(path: str = ".env.example") -> None:
    """Writes an example env file."""
    env_example_content = """# API access
API_CODE=change_me
CORS_ORIGINS=*

# Database
DATABASE_URL=sqlite:///./bhumi.db

# Site
DOMAIN=https://bhumiconsultancy.in
UPSTREAM_API_URL=http://127.0.0.1:8000

# Telegram notifications
TELEGRAM_BOT_TOKEN=your_telegram_bot_token_here
TELEGRAM_CHAT_ID=your_telegram_chat_id_here

# Logging
LOG_LEVEL=INFO
LOG_FILE=./logs/api.log
"""

    with open(path, "w", encoding="utf-8") as f:
        f.write(env_example_content)
