"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ZONECHECK_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Delivery Zone Service"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level.")

    warehouse_source: Literal["auto", "database", "file"] = Field(
        default="auto",
        description="Warehouse read model. 'auto' uses the database when Supabase is configured, the workbook otherwise.",
    )
    warehouses_file: Path = Field(
        default=Path("data/warehouses.xlsx"),
        description="Workbook with warehouse locations and delivery settings.",
    )

    osrm_base_url: Optional[str] = Field(
        default="http://router.project-osrm.org",
        description="Base URL for the OSRM routing service. Empty disables routing (fallback only).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel distances.",
    )
    osrm_timeout_seconds: float = Field(default=5.0, gt=0.0)
    osrm_max_retries: int = Field(default=2, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    fallback_average_speed_kmh: float = Field(
        default=30.0,
        gt=0.0,
        description="Average urban speed used to derive durations for straight-line estimates.",
    )
    max_parallel_route_requests: int = Field(default=8, ge=1)

    free_delivery_min_amount: float = Field(default=500.0, ge=0.0)
    default_free_delivery_radius_km: float = Field(default=3.0, ge=0.0)
    base_delivery_charge: float = Field(default=20.0, ge=0.0)
    minimum_delivery_charge: float = Field(default=10.0, ge=0.0)
    maximum_delivery_charge: float = Field(default=100.0, ge=0.0)
    per_km_charge: float = Field(default=5.0, ge=0.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
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

    @field_validator("warehouses_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("osrm_base_url", mode="before")
    @classmethod
    def _strip_base_url(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip().rstrip("/")
        return text or None

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

    @model_validator(mode="after")
    def _check_charge_limits(self) -> "Settings":
        if self.minimum_delivery_charge > self.maximum_delivery_charge:
            raise ValueError("Minimum delivery charge cannot be greater than maximum delivery charge")
        if self.base_delivery_charge < self.minimum_delivery_charge:
            raise ValueError("Base delivery charge cannot be less than minimum delivery charge")
        return self


settings = Settings()
