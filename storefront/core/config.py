"""
Centralized configuration for the storefront sync layer
"""
from pydantic_settings import BaseSettings
from typing import Optional


DEFAULT_ADMIN_SECRET = "admin123"


class Settings(BaseSettings):
    """Storefront client configuration"""

    # Remote API
    STOREFRONT_API_URL: str = "http://localhost:5000/api"
    REQUEST_TIMEOUT: float = 30.0

    # Static admin credential sent as X-Admin-Secret.
    # Known weak point: it ships with the client configuration.
    ADMIN_SECRET: str = DEFAULT_ADMIN_SECRET

    # Cache policy
    PRODUCT_CACHE_TTL_SECONDS: float = 300.0
    FETCH_THROTTLE_SECONDS: float = 30.0
    ORDER_POLL_INTERVAL_SECONDS: float = 60.0

    # Wishlist keeps optimistic state when the server call fails
    WISHLIST_OPTIMISTIC_NO_ROLLBACK: bool = True

    # Local persistence
    STORAGE_KEY_PREFIX: str = "kottravai_"
    STORAGE_PATH: Optional[str] = None

    LOG_LEVEL: str = "INFO"

    @property
    def uses_default_admin_secret(self) -> bool:
        return self.ADMIN_SECRET == DEFAULT_ADMIN_SECRET

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


def get_settings() -> Settings:
    """Build settings from the current environment"""
    return Settings()
