"""Storefront Service Configuration"""

from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    # Application
    app_name: str = "Storefront Checkout"
    debug: bool = True
    host: str = "0.0.0.0"
    port: int = 8000

    # Commerce backend (inventory, orders, payments)
    api_base_url: str = "http://localhost:8001/api"
    api_auth_token: Optional[str] = None
    http_timeout: float = 30.0

    # Availability polling, in seconds
    cart_refresh_interval: float = 30.0
    badge_refresh_interval: float = 60.0
    availability_polling: bool = True

    # Pricing
    free_shipping_threshold: Decimal = Decimal("500")
    flat_shipping_fee: Decimal = Decimal("40")
    tax_rate: Decimal = Decimal("0.05")
    coupon_discount_rate: Decimal = Decimal("0.10")
    coupon_codes: list[str] = ["WELCOME10"]
    default_currency: str = "INR"

    # Addresses
    default_country: str = "India"
    known_cities: list[str] = ["Bhopal", "Delhi", "Mumbai", "Kolkata", "Chennai"]
    known_states: list[str] = [
        "Madhya Pradesh",
        "Maharashtra",
        "Delhi",
        "West Bengal",
        "Tamil Nadu",
    ]

    # Sessions
    session_max_age_hours: int = 24
    session_cleanup_interval: float = 900.0

    class Config:
        env_file = "config/.env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def backend_configured(self) -> bool:
        """Check if the commerce backend is configured"""
        return bool(self.api_base_url)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
