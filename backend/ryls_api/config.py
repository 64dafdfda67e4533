"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent

SANDBOX = "sandbox"
PRODUCTION = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "RYLS Registration & Payment API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'ryls.db'}"

    # --- Midtrans Gateway ---
    MIDTRANS_MODE: str = SANDBOX
    MIDTRANS_SANDBOX_SERVER_KEY: str = ""
    MIDTRANS_SANDBOX_CLIENT_KEY: str = ""
    MIDTRANS_SERVER_KEY: str = ""
    MIDTRANS_CLIENT_KEY: str = ""
    MIDTRANS_SANDBOX_SNAP_URL: str = "https://app.sandbox.midtrans.com"
    MIDTRANS_PRODUCTION_SNAP_URL: str = "https://app.midtrans.com"
    MIDTRANS_SANDBOX_API_URL: str = "https://api.sandbox.midtrans.com"
    MIDTRANS_PRODUCTION_API_URL: str = "https://api.midtrans.com"
    GATEWAY_TIMEOUT_SECONDS: float = 30.0

    # --- Pricing ---
    USD_TO_IDR_RATE: Decimal = Decimal("15000")
    FULLY_FUNDED_PRICE_USD: Decimal = Decimal("15")
    SELF_FUNDED_PRICE_USD: Decimal = Decimal("600")
    MIN_AMOUNT_IDR: int = 1000
    MAX_AMOUNT_IDR: int = 999_999_999

    # --- Order IDs ---
    ORDER_ID_PREFIX: str = "RYLS"
    ORDER_ID_WIDTH: int = 4
    ORDER_ID_START: int = 1
    ORDER_ID_MAX_LENGTH: int = 50
    ORDER_ID_ALLOCATION_ATTEMPTS: int = 5

    # --- Payment Expiry ---
    PAYMENT_EXPIRY_DURATION: int = 24
    PAYMENT_EXPIRY_UNIT: str = "hour"

    # --- Webhook ---
    WEBHOOK_SIGNATURE_ALGORITHM: str = "sha512"
    WEBHOOK_TIMEOUT_MS: int = 30_000
    WEBHOOK_RETRY_ATTEMPTS: int = 3

    # --- Uploads ---
    UPLOAD_DIR: str = str(BASE_DIR / "uploads")
    MAX_ESSAY_BYTES: int = 10 * 1024 * 1024
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024

    # --- Rate Limiting ---
    PAYMENT_RATE_LIMIT_REQUESTS: int = 5
    PAYMENT_RATE_LIMIT_WINDOW: int = 60

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.MIDTRANS_MODE.lower() == PRODUCTION

    @property
    def midtrans_server_key(self) -> str:
        return self.MIDTRANS_SERVER_KEY if self.is_production else self.MIDTRANS_SANDBOX_SERVER_KEY

    @property
    def midtrans_client_key(self) -> str:
        return self.MIDTRANS_CLIENT_KEY if self.is_production else self.MIDTRANS_SANDBOX_CLIENT_KEY

    @property
    def midtrans_snap_url(self) -> str:
        return self.MIDTRANS_PRODUCTION_SNAP_URL if self.is_production else self.MIDTRANS_SANDBOX_SNAP_URL

    @property
    def midtrans_api_url(self) -> str:
        return self.MIDTRANS_PRODUCTION_API_URL if self.is_production else self.MIDTRANS_SANDBOX_API_URL


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
