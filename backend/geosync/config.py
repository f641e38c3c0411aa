"""
GeoSync — Configuration via pydantic-settings.

Environment variables (prefix ``GEOSYNC_``) override defaults.  The same
settings object serves the HTTP backend (database, CORS) and the map
client (API base URL, debounce window, clustering radius).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env_path: ClassVar[str] = str(Path(__file__).resolve().parents[2] / ".env")
    model_config = SettingsConfigDict(
        env_file=env_path,
        env_file_encoding="utf-8",
        env_prefix="GEOSYNC_",
        # Ignore unrelated environment variables (for example the
        # POSTGRES_* variables used by Docker).
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────
    app_name: str = "GeoSync"
    debug: bool = False

    # ── Database (PostGIS) ─────────────────────────────────────────
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "geosync"
    db_password: str = "geosync_secret"
    db_name: str = "gisdb"

    # Server-side statement timeout applied to every store round trip.
    query_timeout_s: float = 10.0

    @property
    def database_url(self) -> str:
        """Async SQLAlchemy connection string (asyncpg driver)."""
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Spatial queries ────────────────────────────────────────────
    # Radius used by ``?near=`` queries when ``radius`` is absent or bad.
    default_near_radius_m: int = 5000

    # ── CORS ───────────────────────────────────────────────────────
    # Comma-separated origins; "*" allows any origin.
    cors_origins: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse the comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    # ── Map client ─────────────────────────────────────────────────
    api_base: str = "http://localhost:3000"
    # Per-request network timeout for the client (seconds).
    request_timeout_s: float = 10.0
    # Quiet period after the last viewport change before a fetch.
    fetch_debounce_s: float = 0.4
    # Maximum on-screen distance (px) between members of one cluster.
    max_cluster_radius_px: float = 120.0

    # ── Reverse geocoding ──────────────────────────────────────────
    geocoder_url: str = "https://nominatim.openstreetmap.org/reverse"
    geocoder_user_agent: str = "GeoSync/0.1"
    geocoder_timeout_s: float = 5.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
