"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FIELDSYNC_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Field Distribution Sync API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the service.")
    replica_root: Path = Field(
        default=Path("data/replica"),
        description="Directory holding the on-device key-value store.",
    )

    remote_backend: Literal["nocodb", "supabase"] = Field(
        default="nocodb",
        description="Which remote table store the gateway talks to.",
    )
    remote_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the tabular API (or of the proxy that fronts it).",
    )
    remote_api_token: Optional[str] = Field(
        default=None,
        description="API token sent as the xc-token header in direct mode.",
    )
    remote_project_id: Optional[str] = Field(
        default=None,
        description="Project id; resolved from the meta endpoint when unset.",
    )
    remote_proxy_mode: Optional[bool] = Field(
        default=None,
        description="Strip the credential client-side. Auto-detected for workers.dev URLs when unset.",
    )
    remote_page_size: int = Field(default=1000, ge=1, le=1000)

    distributions_table: str = "Distributions"
    zones_table: str = "Zones"
    binomes_table: str = "Binomes"
    logs_table: str = "Logs"

    sync_debounce_seconds: float = Field(default=2.0, ge=0.0)
    session_timeout_minutes: int = Field(default=30, ge=1)
    activity_refresh_seconds: int = Field(default=60, ge=0)
    default_zone_color: str = "#10b981"

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "capacitor://localhost",
            "ionic://localhost",
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

    @field_validator("replica_root", mode="before")
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
    def proxy_mode(self) -> bool:
        """Whether requests go through a trusted intermediary that injects the credential."""
        if self.remote_proxy_mode is not None:
            return self.remote_proxy_mode
        return bool(self.remote_base_url and "workers.dev" in self.remote_base_url)


settings = Settings()
