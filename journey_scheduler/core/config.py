"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from journey_scheduler.constants import (
    DEFAULT_WORKER_INTERVAL_MS,
    DEFAULT_WORKER_BATCH_SIZE,
    DEFAULT_RECOVERY_TIMEOUT_MINUTES,
    DEFAULT_MAX_STEPS_PER_ADVANCE,
)


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=3000, env="PORT", ge=1024, le=65535)
    debug: bool = Field(default=False, env="DEBUG")

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/journeys.db", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    database_pool_size: int = Field(default=20, env="DATABASE_POOL_SIZE", ge=5, le=100)
    database_max_overflow: int = Field(default=30, env="DATABASE_MAX_OVERFLOW", ge=10, le=100)

    # Resume Worker
    worker_enabled: bool = Field(default=True, env="WORKER_ENABLED")
    worker_interval_ms: int = Field(default=DEFAULT_WORKER_INTERVAL_MS, env="WORKER_INTERVAL_MS", ge=10)
    worker_batch_size: int = Field(default=DEFAULT_WORKER_BATCH_SIZE, env="WORKER_BATCH_SIZE", ge=1, le=10000)

    # Recovery Sweeper
    recovery_enabled: bool = Field(default=True, env="RECOVERY_ENABLED")
    recovery_timeout_minutes: int = Field(default=DEFAULT_RECOVERY_TIMEOUT_MINUTES, env="RECOVERY_TIMEOUT_MINUTES", ge=1)
    recovery_interval_seconds: int = Field(default=60, env="RECOVERY_INTERVAL_SECONDS", ge=1)

    # Execution Engine
    max_steps_per_advance: int = Field(default=DEFAULT_MAX_STEPS_PER_ADVANCE, env="MAX_STEPS_PER_ADVANCE", ge=1)
    strict_operators: bool = Field(default=False, env="STRICT_OPERATORS")

    # Message Delivery
    delivery_mode: Literal["log", "webhook"] = Field(default="log", env="DELIVERY_MODE")
    delivery_webhook_url: Optional[str] = Field(default=None, env="DELIVERY_WEBHOOK_URL")
    delivery_timeout: float = Field(default=10.0, env="DELIVERY_TIMEOUT", ge=0.5, le=120.0)

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite"):
            if ":///" in v:
                db_path = v.split("///")[1]
                if db_path and db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def validate_delivery(self):
        """Webhook delivery needs a target URL."""
        if self.delivery_mode == "webhook" and not self.delivery_webhook_url:
            raise ValueError("DELIVERY_WEBHOOK_URL is required when DELIVERY_MODE=webhook")
        return self

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url.startswith("sqlite")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
