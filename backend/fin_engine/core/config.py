"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite:///./fin_engine.db"

    # Cost model
    DEFAULT_VARIABLE_COST_RATE: float = 30.0
    VARIABLE_COST_RATE_MIN: float = 1.0
    VARIABLE_COST_RATE_MAX: float = 80.0
    BRANCH_COUNT: int = 2
    DAYS_PER_MONTH: int = 30

    # Forecasting
    FORECAST_LOOKBACK_DAYS: int = 60

    # Narrative (LLM)
    LLM_PROVIDER: str = "mock"
    LLM_API_KEY: Optional[str] = None
    LLM_MODEL: str = "gpt-4o-mini"
    NARRATIVE_TIMEOUT_SECONDS: float = 30.0

    # HTTP
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"


settings = Settings()
