"""Application configuration"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./pricecompare.db"
    ENVIRONMENT: str = "development"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 30

    # Nearby search (kilometres)
    DEFAULT_RADIUS_KM: float = 5.0
    MAX_RADIUS_KM: float = 50.0

    # Submissions
    MAX_BATCH_SIZE: int = 1000
    DEFAULT_CURRENCY: str = "EUR"
    STRICT_BARCODE_VALIDATION: bool = False

    # Confidence weights by submitter
    SOURCE_WEIGHT_SHOPPER: float = 0.85
    SOURCE_WEIGHT_STORE: float = 1.0

    # Price history lookback (days)
    PRICE_HISTORY_DAYS: int = 30

    SEED_SAMPLE_DATA: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    class Config:
        env_file = ".env"


settings = Settings()
