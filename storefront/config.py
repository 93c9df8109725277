"""
Settings — environment-driven configuration (prefix STOREFRONT_).
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STOREFRONT_", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./storefront.db"

    # Shipping & stock
    free_shipping_threshold: Decimal = Decimal("100")
    flat_shipping_fee: Decimal = Decimal("10")
    low_stock_threshold: int = 5

    # Catalog
    page_size: int = 12
    catalog_refresh_seconds: float = 30.0
    fragrance_category_slug: str = "perfumes"
    placeholder_image: str = "/images/default-product.jpg"
    image_base_url: str = "/uploads"
    # Unset keeps uploads in memory
    upload_dir: Path | None = None

    # Checkout replay & read retries
    checkout_replay_ttl_seconds: float = 86400.0
    read_retry_attempts: int = 3
    read_retry_delay_seconds: float = 0.1

    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


__all__ = ("Settings", "get_settings")
