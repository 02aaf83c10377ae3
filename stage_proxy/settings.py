"""Application settings using Pydantic BaseSettings."""
from pydantic_settings import BaseSettings
from typing import Dict, Optional, Tuple


class Settings(BaseSettings):
    """Application configuration."""

    # Database (options + transients)
    DATABASE_URL: str = "sqlite+aiosqlite:///./stage_proxy.db"

    # Environment-level overrides. When set they win over the stored options.
    STAGE_FILE_PROXY_URL: Optional[str] = None
    STAGE_FILE_PROXY_MODE: Optional[str] = None
    STAGE_FILE_PROXY_LOCAL_DIR: Optional[str] = None

    # Local site layout
    HOME_URL: str = "http://localhost:8000"
    SITE_URL: str = "http://localhost:8000"
    UPLOADS_PATH: str = "/wp-content/uploads"  # uploads root, relative to the site root
    UPLOADS_BASE_URL: Optional[str] = None  # defaults to SITE_URL + UPLOADS_PATH
    UPLOADS_BASE_DIR: str = "./uploads"
    MULTISITE: bool = False
    SUBDOMAIN_INSTALL: bool = False

    # Local fallback pool lives in THEME_DIR/<local dir>/
    THEME_DIR: str = "./theme"

    # Remote fetch
    REMOTE_TIMEOUT: float = 30.0  # seconds
    REMOTE_ERROR_STATUS: int = 400  # statuses at or above this are failures

    # Transient lifetimes (seconds)
    DECISION_CACHE_TTL: int = 3600
    FALLBACK_POOL_TTL: int = 3600

    # Placeholder service for 'lorempixel' mode
    PLACEHOLDER_URL: str = "http://lorempixel.com"

    # Registered image sizes: name -> (width, height, crop)
    IMAGE_SIZES: Dict[str, Tuple[int, int, bool]] = {
        "thumbnail": (150, 150, True),
        "medium": (300, 300, False),
        "medium_large": (768, 0, False),
        "large": (1024, 1024, False),
    }

    LOG_LEVEL: str = "INFO"

    # Server settings
    API_V1_PREFIX: str = "/v1"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def uploads_base_url(self) -> str:
        if self.UPLOADS_BASE_URL:
            return self.UPLOADS_BASE_URL.rstrip("/")
        return self.SITE_URL.rstrip("/") + self.UPLOADS_PATH


settings = Settings()
