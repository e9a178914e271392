import os

from pydantic import BaseModel, Field


def _env(name: str, default: str) -> str:
    return os.getenv(f"EZPARK_{name}", default).strip() or default


class Settings(BaseModel):
    # Sample spots loaded into the in-memory repository at start-up (CSV/JSON).
    seed_path: str = Field(
        default_factory=lambda: _env(
            "SEED_PATH",
            os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "sample_spots.json"),
        )
    )

    # MapQuest route matrix, used for per-spot distance/duration.
    mapquest_api_key: str = Field(default_factory=lambda: os.getenv("MAPQUEST_API_KEY", "").strip())
    mapquest_base_url: str = Field(
        default_factory=lambda: _env("MAPQUEST_BASE_URL", "https://www.mapquestapi.com").rstrip("/")
    )
    route_timeout_s: float = Field(default_factory=lambda: float(_env("ROUTE_TIMEOUT_S", "10")))

    default_search_radius_km: float = 5.0
    default_currency: str = "₱"

    # Client-local history
    history_capacity: int = 20
    local_storage_path: str = Field(
        default_factory=lambda: _env(
            "LOCAL_STORAGE_PATH", os.path.join(os.path.expanduser("~"), ".ezpark", "local_storage.json")
        )
    )

    # Geolocation: high-accuracy attempt, watchdog before the fallback, low-accuracy fallback.
    high_accuracy_timeout_s: float = 15.0
    fallback_after_s: float = 8.0
    low_accuracy_timeout_s: float = 10.0
    low_accuracy_max_age_s: float = 60.0

    # Map center used when no fix is available (Manila).
    default_latitude: float = 14.5995
    default_longitude: float = 120.9842
    default_accuracy_m: float = 5000.0

    api_base_url: str = Field(default_factory=lambda: _env("API_BASE_URL", "http://127.0.0.1:5000").rstrip("/"))
    host: str = Field(default_factory=lambda: _env("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(_env("PORT", "5000")))
    cors_origins: list[str] = Field(
        default_factory=lambda: [o.strip() for o in _env("CORS_ORIGINS", "*").split(",") if o.strip()]
    )
    log_level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "INFO").upper())


settings = Settings()
