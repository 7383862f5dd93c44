"""
Application settings loaded from the environment and an optional .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App
    APP_NAME: str = "TeamTango"
    APP_VERSION: str = "1.0.0"
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "teamtango"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "teamtango"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 10
    SQL_ECHO: bool = False

    # JWT (no default: the signing key must come from the environment)
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24

    # HTTP
    REQUEST_TIMEOUT_SECONDS: float = 30
    ALLOWED_ORIGINS: str = "http://localhost:5000"
    FRONTEND_DIR: Optional[str] = None

    # Domain
    APP_TIMEZONE: str = "Asia/Kolkata"
    DEFAULT_CITY: str = "Pune"
    DEFAULT_HOURLY_RATE: float = 110

    # Optional SuperAdmin seeded on startup
    BOOTSTRAP_ADMIN_EMAIL: Optional[str] = None
    BOOTSTRAP_ADMIN_PASSWORD: Optional[str] = None

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def is_test(self) -> bool:
        return self.ENV.lower() == "test"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
