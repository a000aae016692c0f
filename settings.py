import os
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "Frame Store API"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    PORT: int = int(os.getenv("PORT", 8000))
    CORS_ORIGINS: List[str] = ["*"]

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "framestore")

    # Admin session
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 60 * 24  # 24h
    SESSION_COOKIE_NAME: str = "admin_session"
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD_HASH: str = os.getenv("ADMIN_PASSWORD_HASH", "")
    ADMIN_ID: str = "admin"

    # Uploads
    UPLOAD_ROOT: str = os.getenv("UPLOAD_ROOT", "public")
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp", "image/gif"]

    # Orders
    STORE_TIMEZONE: str = "Asia/Kolkata"
    CURRENCY: str = "INR"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
