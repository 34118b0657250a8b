import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    environment: str = "development"
    log_level: str = "INFO"

    postgres_user: str = os.getenv("POSTGRES_USER", "user")
    postgres_password: str = os.getenv("POSTGRES_PASSWORD", "password")
    postgres_db: str = os.getenv("POSTGRES_DB", "examwatch_db")
    postgres_host: str = os.getenv("POSTGRES_HOST", "db")
    postgres_port: int = 5432

    # full URL wins over the postgres_* parts (tests point this at sqlite)
    database_url: Optional[str] = None

    @property
    def async_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    cors_origins_str: str = "http://localhost:3000,http://localhost:5173,http://localhost:80"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins_str.split(",")]

    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    cache_enabled: bool = True
    cache_default_ttl: int = 600
    snapshot_cache_ttl: int = 2

    slow_request_threshold: float = 1.0

    # real-time channel
    heartbeat_interval_seconds: float = 30.0
    reconnect_delay_seconds: float = 3.0
    monitor_poll_interval_seconds: float = 5.0
    max_violation_length: int = 500

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
