import logging
import os
import sys
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def setup_logging(level: int = logging.INFO):
    """Configure application logging."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# Initialize logging on import
setup_logging()

logger = logging.getLogger(__name__)

# SQLite file lives in backend/data unless DATABASE_URL says otherwise
DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Completion provider (OpenAI-compatible). VITE_* names are still accepted
    api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("api_key", "VITE_API_KEY")
    )
    api_base_url: str = Field(
        default="https://api.moonshot.cn/v1",
        validation_alias=AliasChoices("api_base_url", "VITE_API_BASE_URL"),
    )
    model: str = Field(
        default="moonshot-v1-8k",
        validation_alias=AliasChoices("model", "VITE_MODEL"),
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # Seconds allowed for connect and for each read from the provider
    provider_timeout: float = Field(default=30.0, gt=0)

    # History store
    database_url: str = f"sqlite+aiosqlite:///{os.path.join(DATA_DIR, 'chat.db')}"
    persist_chat_history: bool = False

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    cors_origins: List[str] = ["*"]


def get_settings() -> Settings:
    """Build settings from the environment."""
    settings = Settings()
    if not settings.api_key:
        logger.warning("API_KEY is not set; upstream requests will be rejected by the provider")
    return settings
