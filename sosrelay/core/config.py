"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Gateway settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = "sosrelay"
    debug: bool = False
    database_url: str = "sqlite:///./sosrelay.db"

    # Remote origin the client talks to
    remote_base_url: str = "http://localhost:8080"
    api_prefix: str = "/api/"
    critical_path: str = "/api/emergency/sos"
    offline_fallback_path: str = "/index.html"

    # Cache tiers
    cache_prefix: str = "sosrelay"
    cache_version: str = "v1.0.0"
    static_assets: list[str] = [
        "/",
        "/index.html",
        "/styles.css",
        "/app.js",
        "/manifest.json",
        "https://unpkg.com/leaflet@1.9.4/dist/leaflet.css",
        "https://unpkg.com/leaflet@1.9.4/dist/leaflet.js",
        "https://cdn.jsdelivr.net/npm/chart.js",
        "https://cdn.jsdelivr.net/npm/qrcode@1.5.3/build/qrcode.min.js",
    ]
    # Third-party origins whose responses may be cached (remote origin always may)
    cache_allowed_origins: list[str] = [
        "https://unpkg.com",
        "https://cdn.jsdelivr.net",
    ]

    # Lifecycle + sync
    skip_waiting_on_install: bool = True
    sync_interval_seconds: float = 0.0  # 0 disables the periodic drain
    http_timeout_seconds: float = 10.0


settings = Settings()
