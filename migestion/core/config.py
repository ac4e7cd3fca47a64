# migestion/core/config.py
import os
import re
from typing import ClassVar, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DURATION_RE = re.compile(r"^(\d+)([smhd])$")


def _default_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url and url.strip():
        return url
    data_dir = os.path.abspath(os.getenv("DATA_DIR", "./data"))
    os.makedirs(data_dir, exist_ok=True)
    return f"sqlite:///{os.path.join(data_dir, 'migestion.db')}"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def normalize_database_url(url: str) -> str:
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


class Settings(BaseModel):
    """Runtime configuration, read from the environment when fields are not given.

    Construction validates every field (defaults included), so a bad
    environment fails at startup with all violations listed at once.
    """

    model_config = ConfigDict(validate_default=True)

    MIN_SECRET_LENGTH: ClassVar[int] = 32

    ENVIRONMENT: Literal["development", "production", "test"] = Field(
        default_factory=lambda: os.getenv("ENVIRONMENT", "development")
    )
    API_PREFIX: str = Field(default_factory=lambda: os.getenv("API_PREFIX", "/api/v1"))

    DATABASE_URL: str = Field(default_factory=_default_database_url)

    JWT_ACCESS_SECRET: str = Field(
        default_factory=lambda: os.getenv("JWT_ACCESS_SECRET", "supersecretaccesskey32charsminimumlengthneeded")
    )
    JWT_REFRESH_SECRET: str = Field(
        default_factory=lambda: os.getenv("JWT_REFRESH_SECRET", "supersecretrefreshkey32charsminimumlengthneeded")
    )
    JWT_ACCESS_EXPIRY: str = Field(default_factory=lambda: os.getenv("JWT_ACCESS_EXPIRY", "15m"))
    JWT_REFRESH_EXPIRY: str = Field(default_factory=lambda: os.getenv("JWT_REFRESH_EXPIRY", "7d"))
    JWT_ALGORITHM: str = Field(default_factory=lambda: os.getenv("JWT_ALGORITHM", "HS256"))

    BCRYPT_ROUNDS: int = Field(default_factory=lambda: int(os.getenv("BCRYPT_ROUNDS", "10")), ge=10, le=15)

    AUTH_RATE_LIMIT_MAX: int = Field(default_factory=lambda: int(os.getenv("AUTH_RATE_LIMIT_MAX", "10")), ge=1)
    AUTH_RATE_LIMIT_WINDOW_SECONDS: int = Field(
        default_factory=lambda: int(os.getenv("AUTH_RATE_LIMIT_WINDOW_SECONDS", "900")), ge=1
    )
    AUTH_RATE_LIMIT_MAX_KEYS: int = Field(
        default_factory=lambda: int(os.getenv("AUTH_RATE_LIMIT_MAX_KEYS", "10000")), ge=1
    )

    # peers allowed to set X-Forwarded-For / X-Real-IP; "*" trusts any peer
    TRUSTED_PROXIES: List[str] = Field(
        default_factory=lambda: [p.strip() for p in os.getenv("TRUSTED_PROXIES", "").split(",") if p.strip()]
    )

    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()
        ]
    )

    LOG_LEVEL: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    LOG_JSON: bool = Field(default_factory=lambda: _env_bool("LOG_JSON", "true"))

    METRICS_ENABLED: bool = Field(default_factory=lambda: _env_bool("METRICS_ENABLED", "true"))

    AUTO_MIGRATE: bool = Field(default_factory=lambda: _env_bool("AUTO_MIGRATE", "true"))
    SEED_DEMO_DATA: bool = Field(default_factory=lambda: _env_bool("SEED_DEMO_DATA", "false"))
    AUDIT_RETENTION_DAYS: int = Field(default_factory=lambda: int(os.getenv("AUDIT_RETENTION_DAYS", "365")), ge=1)

    @field_validator("DATABASE_URL")
    @classmethod
    def _normalize_url(cls, v: str) -> str:
        return normalize_database_url(v.strip())

    @field_validator("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET")
    @classmethod
    def _secret_length(cls, v: str) -> str:
        if len(v) < cls.MIN_SECRET_LENGTH:
            raise ValueError(f"must be at least {cls.MIN_SECRET_LENGTH} characters")
        return v

    @field_validator("JWT_ACCESS_EXPIRY", "JWT_REFRESH_EXPIRY")
    @classmethod
    def _duration_format(cls, v: str) -> str:
        if not DURATION_RE.match(v):
            raise ValueError(f"invalid duration '{v}', expected <integer><s|m|h|d>")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def _log_level(cls, v: str) -> str:
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError("must be one of DEBUG, INFO, WARNING, ERROR")
        return v

    @model_validator(mode="after")
    def _distinct_secrets(self) -> "Settings":
        if self.JWT_ACCESS_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


settings = Settings()
