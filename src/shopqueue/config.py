"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SHOPQ_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Nearby Shop Queue API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level.")

    default_radius_m: int = Field(default=5000, ge=0, description="Search radius when none is supplied.")
    max_radius_m: int = Field(default=50_000, ge=0, description="Largest radius a discovery query may use.")
    geo_query_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Upper bound on a single geo index lookup before discovery gives up.",
    )

    default_service_minutes: int = Field(default=20, ge=1, description="Average minutes per customer for new shops.")
    default_opening_time: str = Field(default="09:00")
    default_closing_time: str = Field(default="20:00")
    local_timezone: str = Field(
        default="Asia/Kolkata",
        description="IANA timezone used to evaluate operating hours.",
    )

    store_backend: Literal["memory", "supabase"] = Field(
        default="memory",
        description="Persistence backend for shops and queue entries.",
    )

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("default_opening_time", "default_closing_time")
    @classmethod
    def _validate_hhmm(cls, value: str) -> str:
        hours, _, minutes = value.partition(":")
        if len(hours) != 2 or len(minutes) != 2 or not (hours + minutes).isdigit():
            raise ValueError(f"Expected HH:MM, got '{value}'")
        if int(hours) > 23 or int(minutes) > 59:
            raise ValueError(f"Time out of range: '{value}'")
        return value

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
