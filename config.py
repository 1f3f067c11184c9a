from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql://postgres:postgres@db:5432/library_book"
    AUTH_SERVICE_URL: str = "http://auth-service:8000"
    REDIS_URL: Optional[str] = "redis://redis:6379/0"
    FRONTEND_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    # Listing cache
    CACHE_TTL_SECONDS: int = 300
    CACHE_INVALIDATE_ON_WRITE: bool = True

    # Catalog
    DEFAULT_PAGE_SIZE: int = 5
    MAX_PAGE_SIZE: int = 100
    RECOMMENDATION_LIMIT: int = 10

    # Timeouts (seconds)
    REQUEST_TIMEOUT_SECONDS: Optional[float] = 10.0
    AUTH_TIMEOUT_SECONDS: float = 5.0

    # Schema is managed by migrations unless this is set
    AUTO_CREATE_TABLES: bool = False
    DB_ECHO: bool = False

    @property
    def allow_origins(self) -> List[str]:
        return [origin.strip() for origin in self.FRONTEND_ORIGINS.split(",") if origin.strip()]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
