import logging
from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Application Information
    app_name: str = Field(default="College Portal Assessments")
    app_description: str = Field(default="Timed quizzes for the college portal")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=True)
    production: bool = Field(default=False)
    timezone: str = Field(default="UTC")

    # Database Configuration
    database_url: Optional[str] = Field(default=None)
    db_host: str = Field(default="127.0.0.1")
    db_port: int = Field(default=5432)
    db_database: str = Field(default="college-portal")
    db_username: str = Field(default="portal")
    db_password: str = Field(default="123")

    # Security Settings
    cors_allowed_origins: List[str] = Field(default=["http://localhost:3000"])
    password_hash_rounds: int = Field(default=12)

    # JWT Configuration
    jwt_secret: str = Field(default="your-secret-key-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expiration_days: int = Field(default=7)
    jwt_issuer: str = Field(default="College Portal")

    # Roles
    authorization_roles: List[str] = Field(
        default=["admin", "lecturer", "student", "accountant"]
    )

    # Rate limiting (limiter storage)
    redis_url: str = Field(default="redis://localhost:6379")
    redis_rate_limit: str = Field(default="60/minute")

    # Logging
    log_level: str = Field(default="info")
    log_file: str = Field(default="logs/app.log")

    # Admin Defaults
    admin_default_name: str = Field(default="Portal Admin")
    admin_default_email: str = Field(default="admin@example.com")
    admin_default_password: str = Field(default="Admin@123")

    # Scheduler
    scheduler_enabled: bool = Field(default=True)
    attempt_sweep_interval_seconds: int = Field(default=60, ge=5)

    # Attempt policy
    attempt_autosave_interval_seconds: int = Field(default=30, ge=1)
    attempt_grace_seconds: int = Field(default=30, ge=0)
    countdown_warning_seconds: int = Field(default=300)
    countdown_critical_seconds: int = Field(default=60)

    # Portal client
    portal_base_url: str = Field(default="http://localhost:8000")
    portal_timeout_seconds: float = Field(default=10.0)

    # ============================
    # Generic comma-separated parser
    # ============================
    @staticmethod
    def _parse_csv(value, default):
        if isinstance(value, str):
            items = [x.strip() for x in value.split(",") if x.strip()]
            return items if items else default
        if isinstance(value, list):
            return value
        return default

    @field_validator("authorization_roles", mode="before")
    def validate_roles(cls, v):
        return cls._parse_csv(v, ["admin", "lecturer", "student", "accountant"])

    @field_validator("cors_allowed_origins", mode="before")
    def validate_cors(cls, v):
        return cls._parse_csv(v, ["http://localhost:3000"])

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings():
    try:
        settings = Settings()
        logger.info("Settings loaded successfully")
        return settings
    except ValidationError as e:
        logger.error(f"Settings validation error: {e}")
        raise


settings = load_settings()
