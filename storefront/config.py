from pydantic_settings import BaseSettings
from pydantic import field_validator
from decimal import Decimal
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./storefront.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12

    # App Settings
    APP_NAME: str = "Pouch Storefront"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
    ]

    # Checkout pricing
    TAX_RATE: Decimal = Decimal("0.13")  # Ontario HST
    SHIPPING_COST: Decimal = Decimal("10.00")  # Flat rate per order

    # Inventory
    DEFAULT_STOCK_LOCATION: str = "Main Warehouse"  # Restock target on cancellation

    # Referral links point at the storefront
    REFERRAL_BASE_URL: str = "http://localhost:3000"

    # Commissions
    DEFAULT_DISTRIBUTOR_COMMISSION_RATE: Decimal = Decimal("10.00")  # Percent, used when distributor has no rate

    # Admin task scheduling
    ORDER_REVIEW_TASK_DUE_DAYS: int = 1
    PAYMENT_TASK_DUE_DAYS: int = 3

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
