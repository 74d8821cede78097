"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    database_url: str
    organization_id: str = ""
    worker_port: int = 9000
    max_pages: int = 3
    default_phone_region: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_api_key = os.getenv("GOOGLE_PLACES_API_KEY") or os.getenv("GOOGLE_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    organization_id = os.getenv("ORGANIZATION_ID", "")
    worker_port = int(os.getenv("WORKER_PORT", "9000"))
    max_pages = int(os.getenv("WORKER_MAX_PAGES", "3"))
    default_phone_region_raw = os.getenv("DEFAULT_PHONE_REGION")
    default_phone_region = default_phone_region_raw.strip().upper() if default_phone_region_raw else None

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; Google Places requests will fail.")
    if not organization_id:
        logger.warning("ORGANIZATION_ID is not configured; prospects will be saved without an owner.")

    return Settings(
        google_api_key=google_api_key,
        database_url=database_url,
        organization_id=organization_id,
        worker_port=worker_port,
        max_pages=max_pages,
        default_phone_region=default_phone_region,
    )
