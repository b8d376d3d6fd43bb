"""
FITSIGHT Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "FITSIGHT"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://10.0.2.2:8000"]

    # Gemini (motivational tips)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    TIP_TEMPERATURE: float = 0.7
    TIP_MAX_OUTPUT_TOKENS: int = 50
    TIP_TIMEOUT_SECONDS: float = 8.0

    # Workout defaults
    DEFAULT_TARGET_REPS: int = 12
    DEFAULT_TARGET_SETS: int = 3
    DEFAULT_REST_SECONDS: int = 60
    DEFAULT_WEIGHT_KG: float = 70.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
