from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Supabase Auth + Storage
    SUPABASE_URL: str
    SUPABASE_JWT_SECRET: str
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    STORAGE_TIMEOUT_SECONDS: int = 30

    # Query cache (seconds)
    CACHE_STALE_SECONDS: float = 60
    CACHE_TTL_SECONDS: float = 300
    CACHE_SWEEP_INTERVAL_SECONDS: float = 60

    # Retry with exponential backoff
    RETRY_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0

    # Uploads
    IMPORT_MAX_FILE_MB: int = 10
    CONTRACT_MAX_FILE_MB: int = 50
    IMAGE_MAX_FILE_MB: int = 10

    # Bulk import
    IMPORT_TOKEN_DEFAULT_HOURS: int = 24

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
