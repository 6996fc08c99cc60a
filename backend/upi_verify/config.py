"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "UPI Payment Verification API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'upi_payments.db'}"

    # --- Uploads ---
    UPLOAD_DIR: str = str(BASE_DIR / "uploads" / "upi-payments")
    UPLOAD_URL_PREFIX: str = "/uploads/upi-payments"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    ALLOWED_IMAGE_TYPES: list[str] = ["image/jpeg", "image/png", "image/webp"]
    UPLOAD_RATE_LIMIT: int = 10
    UPLOAD_RATE_WINDOW: int = 60

    # --- OCR ---
    TESSERACT_CMD: str = ""
    OCR_LANGUAGE: str = "eng"
    PREPROCESS_MAX_DIMENSION: int = 2000

    # --- Payment lifecycle ---
    PAYMENT_EXPIRY_HOURS: int = 24
    MAX_PAYMENT_ATTEMPTS: int = 3

    # --- Notifications ---
    NOTIFICATIONS_ENABLED: bool = False
    ADMIN_EMAIL: str = "admin@example.com"

    # --- Security ---
    CORS_ORIGINS: list[str] = ["*"]

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
