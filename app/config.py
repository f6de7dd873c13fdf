from pydantic_settings import BaseSettings
from pydantic import field_validator
from decimal import Decimal
from functools import lru_cache
import json


class Settings(BaseSettings):
    """SalesDesk settings, read from the environment or a .env file."""

    # Database (postgresql://, postgresql+psycopg:// or sqlite+aiosqlite://)
    DATABASE_URL: str

    # Pool sizing, ignored for SQLite
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds
    DB_POOL_RECYCLE: int = 1800  # seconds

    APP_NAME: str = "SalesDesk Commissions API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # JSON list or comma-separated string
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Commissions
    COMMISSION_ALLOCATION_TOLERANCE: Decimal = Decimal("0.01")
    COMMISSION_CLAMP_NEGATIVE_BASE: bool = False
    COMMISSION_REF_PREFIX: str = "COMM"
    COMMISSION_PAYOUT_REF_PREFIX: str = "COMM-PAY"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def split_cors_origins(cls, v):
        if not isinstance(v, str):
            return v
        try:
            return json.loads(v)
        except json.JSONDecodeError:
            return [origin.strip() for origin in v.split(',')]

    @field_validator('COMMISSION_ALLOCATION_TOLERANCE')
    @classmethod
    def tolerance_not_negative(cls, v):
        if v < 0:
            raise ValueError("COMMISSION_ALLOCATION_TOLERANCE cannot be negative")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin for origin in self.CORS_ORIGINS if origin]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
