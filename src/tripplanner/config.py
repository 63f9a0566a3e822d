"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="TRIP_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Trip Route Planner API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Level applied to the tripplanner logger.")
    data_root: Path = Field(default=Path("data"), description="Root directory for snapshots and exports.")
    snapshot_filename: str = Field(default="trip.json", description="File name of the persisted trip snapshot.")
    osrm_base_url: Optional[str] = Field(
        default="https://router.project-osrm.org",
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "car"] = Field(
        default="driving",
        description="OSRM profile to use when computing routes.",
    )
    osrm_timeout_seconds: float = Field(default=10.0, gt=0.0)
    osrm_max_retries: int = Field(default=0, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    route_queue_min_delay_seconds: float = Field(
        default=0.4,
        ge=0.0,
        description="Minimum spacing between two consecutive routing calls.",
    )
    route_queue_rate_limit_delay_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Extra wait applied to the next routing call after a 429 response.",
    )
    route_debounce_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Quiet period after a stop change before a day's route is recomputed.",
    )
    photon_base_url: str = Field(
        default="https://photon.komoot.io",
        description="Base URL of the Photon geocoder used for place search.",
    )
    photon_timeout_seconds: float = Field(default=10.0, gt=0.0)
    default_stop_duration: int = Field(default=60, ge=0, description="Default minutes spent at a stop.")
    distance_unit: Literal["km", "mi"] = Field(default="km")
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
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

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
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

    @property
    def snapshot_path(self) -> Path:
        return self.data_root / self.snapshot_filename


settings = Settings()
