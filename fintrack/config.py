"""
Application settings.
"""
from pydantic_settings import BaseSettings
from typing import Dict, List


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./data/fintrack.db"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Files
    DATA_DIR: str = "./data"

    # Rate limiting (per user token bucket)
    RATE_LIMIT_CAPACITY: int = 10
    RATE_LIMIT_REFILL_SECONDS: float = 3600.0

    # Receipt scanning (Gemini)
    GEMINI_API_KEY: str = ""
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODELS: List[str] = [
        "gemini-1.5-flash-002",
        "gemini-1.5-pro-002",
        "gemini-2.5-flash-preview-05-20",
        "gemini-2.5-pro-preview-03-25",
    ]
    GEMINI_MODEL_WEIGHTS: Dict[str, float] = {}
    GEMINI_SELECTION_POLICY: str = "priority"  # priority | weighted
    GEMINI_MAX_ATTEMPTS: int = 0  # 0 = try every configured model
    GEMINI_TIMEOUT_SECONDS: float = 30.0
    GEMINI_HEALTH_MODELS: List[str] = [
        "gemini-1.5-flash",
        "gemini-1.5-pro",
        "gemini-pro-vision",
    ]
    RECEIPT_MAX_BYTES: int = 5 * 1024 * 1024

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
