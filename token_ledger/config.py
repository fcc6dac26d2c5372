from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Ledger storage ---
    STORAGE_BACKEND: str = "memory"          # memory / sql
    DATABASE_URL: str = "sqlite:///./token_ledger.db"
    CATALOG_PATH: Optional[str] = None
    SEED_DEMO_DATA: bool = True

    # --- Request layer ---
    DEFAULT_USER_ID: int = 1
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # --- External AI backend ---
    AI_BACKEND_URL: str = "http://localhost:8080"
    AI_BACKEND_TIMEOUT: float = 30.0

    # --- Rewards ---
    REFERRAL_REWARD: int = 500
    DAILY_LOGIN_REWARD: int = 100
    PROFILE_COMPLETION_REWARD: int = 300


@lru_cache
def get_settings() -> Settings:
    return Settings()
