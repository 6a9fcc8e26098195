"""
Application configuration settings.
Handles environment variables and application-wide settings.
"""
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application settings
    app_name: str = Field(default="Storefront Orders API")
    app_version: str = Field(default="1.0.0")
    app_description: str = Field(
        default="Order lifecycle, inventory and invoicing service for the storefront back-office"
    )

    # Server settings
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    reload: bool = Field(default=True)

    # Storage settings
    storage_backend: Literal["mongo", "memory"] = Field(default="mongo")
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    database_name: str = Field(default="storefront_db")

    # MongoDB connection settings
    mongodb_server_selection_timeout_ms: int = Field(default=30000)
    mongodb_connect_timeout_ms: int = Field(default=30000)
    mongodb_socket_timeout_ms: int = Field(default=30000)
    mongodb_max_pool_size: int = Field(default=10)
    mongodb_min_pool_size: int = Field(default=1)
    mongodb_retry_writes: bool = Field(default=True)
    mongodb_direct_connection: bool = Field(default=False)

    # Logging settings
    log_level: str = Field(default="INFO")

    # Abuse protection
    rate_limit_window_seconds: int = Field(default=60, gt=0)
    rate_limit_max_requests: int = Field(default=10, gt=0)
    client_ip_header: str = Field(default="x-forwarded-for")

    # Order business rules
    order_number_prefix: str = Field(default="ORD-")
    duplicate_order_window_seconds: int = Field(default=60, ge=0)
    enforce_stock_levels: bool = Field(default=True)

    # Invoicing
    invoice_number_prefix: str = Field(default="INV-")
    invoice_payment_term_days: int = Field(default=30, gt=0)

    # Admin listing cache
    listing_cache_ttl_seconds: float = Field(default=30.0, ge=0)


@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
