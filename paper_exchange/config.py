"""
Configuration management using Pydantic

This module provides application-wide configuration using Pydantic BaseSettings
with support for environment variables and type validation.
"""

from decimal import Decimal
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Application configuration settings.

    All settings can be overridden using environment variables.
    For example, PAPER_EXCHANGE_API_PORT will override api_port.
    """

    # API Configuration
    api_host: str = Field(default="localhost", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    allowed_origins: List[str] = Field(
        default=["*"],
        description="CORS allowed origins"
    )

    # Order Bounds
    min_order_quantity: Decimal = Field(
        default=Decimal("0.00000001"),
        description="Minimum order quantity"
    )
    max_order_quantity: Decimal = Field(
        default=Decimal("1000000000"),
        description="Maximum order quantity"
    )
    min_price: Decimal = Field(
        default=Decimal("0.00000001"),
        description="Minimum acceptable limit price"
    )
    max_price: Decimal = Field(
        default=Decimal("100000000"),
        description="Maximum acceptable limit price"
    )

    # Market Data
    kline_api_url: str = Field(
        default="https://api.binance.com/api/v3",
        description="Base URL of the Binance-compatible REST API"
    )
    kline_cache_dir: Optional[str] = Field(
        default="data",
        description="Directory for cached kline downloads (unset disables caching)"
    )
    default_interval: str = Field(
        default="1h",
        description="Kline interval used when a feed request names none"
    )
    default_limit: int = Field(
        default=500,
        description="Number of klines downloaded when a feed request names none"
    )
    request_timeout: int = Field(
        default=10,
        description="HTTP timeout in seconds for kline downloads"
    )
    request_retries: int = Field(
        default=3,
        description="Retries for failed kline downloads"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_dir: Optional[str] = Field(
        default=None,
        description="Directory for log files (unset logs to console only)"
    )
    log_json: bool = Field(
        default=False,
        description="Emit structured JSON log records"
    )

    class Config:
        env_prefix = "PAPER_EXCHANGE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings instance
    """
    return settings
