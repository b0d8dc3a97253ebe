# storefront_hub/settings.py
"""
Storefront Hub Settings - environment / .env driven.
"""
from __future__ import annotations
from decimal import Decimal
from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # File Storage (logs, exports)
    # =========================================================================
    DATA_ROOT: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "storefront-data"),
        validation_alias=AliasChoices("DATA_ROOT", "storefront_data_root"),
    )
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # =========================================================================
    # PostgreSQL Database
    # =========================================================================
    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_PORT: int = Field(default=5432, validation_alias="DB_PORT")
    DB_NAME: str = Field(default="storefront", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: str = Field(default="postgres", validation_alias="DB_PASSWORD")

    # Connection pool settings
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")
    # create missing tables at startup (local sqlite runs, first deploy)
    DB_CREATE_ALL: bool = Field(default=False, validation_alias="DB_CREATE_ALL")

    # Full URL override (e.g. sqlite+aiosqlite:///./storefront.db for local runs)
    DATABASE_URL: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # =========================================================================
    # HTTP
    # =========================================================================
    CORS_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:8000",
        ],
        validation_alias="CORS_ORIGINS",
    )

    # =========================================================================
    # Store rules
    # =========================================================================
    DEFAULT_MINIMUM_ORDER: Decimal = Field(default=Decimal("0"), validation_alias="DEFAULT_MINIMUM_ORDER")
    CURRENCY_SYMBOL: str = Field(default="R$", validation_alias="CURRENCY_SYMBOL")
    NOTIFY_TIMEOUT: float = Field(default=15.0, validation_alias="NOTIFY_TIMEOUT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()
