import json
from datetime import timedelta
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "SchoolDesk"
    VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False)

    # Database Settings
    DATABASE_URL: str = Field(...)
    DATABASE_ECHO: bool = Field(default=False)

    # Authentication Settings
    SECRET_KEY: str = Field(...)
    ALGORITHM: str = Field(default="HS256")
    TOKEN_ISSUER: str = Field(default="schooldesk")
    ACCESS_TOKEN_EXPIRE_DAYS: int = Field(default=30)
    IMPERSONATION_TOKEN_EXPIRE_HOURS: int = Field(default=2)
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # CORS Settings
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
        ]
    )

    # Logging Settings
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: Optional[str] = Field(default=None)

    # Super admin bootstrap
    SUPER_ADMIN_EMAIL: Optional[str] = Field(default=None)
    SUPER_ADMIN_PASSWORD: Optional[str] = Field(default=None)
    SUPER_ADMIN_SETUP_TOKEN: Optional[str] = Field(default=None)

    # Tenant features beyond the built-in set
    EXTRA_FEATURES: Annotated[List[str], NoDecode] = Field(default_factory=list)

    # Fee defaults
    DEFAULT_MONTHLY_FEE: float = Field(default=5000.0)

    @field_validator("ALLOWED_ORIGINS", "EXTRA_FEATURES", mode="before")
    @classmethod
    def parse_list(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("EXTRA_FEATURES")
    @classmethod
    def normalize_features(cls, v: List[str]) -> List[str]:
        return [tag.strip().lower() for tag in v]

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True
    )


# Initialize settings
settings = Settings()


# Helper Functions
def get_token_expires_delta(impersonation: bool = False) -> timedelta:
    if impersonation:
        return timedelta(hours=settings.IMPERSONATION_TOKEN_EXPIRE_HOURS)
    return timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)


def get_database_url() -> str:
    return settings.DATABASE_URL


def get_logging_config() -> dict:
    return {
        "log_level": settings.LOG_LEVEL,
        "log_dir": settings.LOG_DIR
    }
