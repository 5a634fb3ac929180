import json
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION_ENVS = {"prod", "production"}


def _origin_list(raw: Any) -> list[str]:
    """Accept a list, a JSON list, or a comma-separated string."""
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.strip()
        if raw.startswith("["):
            raw = json.loads(raw)
            if not isinstance(raw, list):
                raise ValueError("CORS_ORIGINS JSON value must be a list")
        else:
            raw = raw.split(",")
    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"Unsupported CORS_ORIGINS value: {raw!r}")
    return [str(origin).strip() for origin in raw if str(origin).strip()]


class Settings(BaseSettings):
    app_name: str = "Produce Ledger Backend"
    env: str = "dev"

    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)

    # How far back a missing snapshot may borrow a prior closing.
    carry_forward_lookback_days: int = Field(default=30, ge=1, le=366)
    # signed: balances may go below zero and get flagged. clamp: floor at zero on every write.
    balance_policy: Literal["signed", "clamp"] = "signed"
    enforce_stock_availability: bool = False
    business_timezone: str = "Asia/Kolkata"

    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    cors_origin_regex: str | None = None
    api_timeout_hint_ms: int = Field(default=300000, ge=1000, le=1_800_000)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: Any) -> list[str]:
        return _origin_list(value)

    @field_validator("balance_policy", mode="before")
    @classmethod
    def normalize_balance_policy(cls, value: str) -> str:
        return str(value).strip().lower()

    @field_validator("business_timezone")
    @classmethod
    def validate_business_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown BUSINESS_TIMEZONE '{value}'") from exc
        return value

    @property
    def is_production(self) -> bool:
        return self.env.lower().strip() in PRODUCTION_ENVS

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        if not self.is_production:
            return self
        if "*" in self.cors_origins or self.cors_origin_regex:
            raise ValueError("Wildcard or regex CORS origins are not allowed in production")
        if self.database_url.lower().startswith("sqlite"):
            raise ValueError("DATABASE_URL cannot point at SQLite in production")
        return self


settings = Settings()
