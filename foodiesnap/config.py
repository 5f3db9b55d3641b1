"""
Settings for the offline sync service.

Every knob (database, BaaS endpoint, queue, cache and connectivity probe)
is read from the environment first, then from ``.env`` in the repo root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DOTENV_FILE = PROJECT_ROOT / ".env"

# Platform-provided variables win over .env values
load_dotenv(dotenv_path=DOTENV_FILE, override=False)


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite+pysqlite:///./foodiesnap_offline.db", alias="DATABASE_URL")

    app_name: str = Field(default="FoodieSnap Offline Sync", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    # Backend-as-a-service REST endpoint used by the action handlers
    baas_url: str = Field(default="http://localhost:54321", alias="BAAS_URL")
    baas_api_key: str | None = Field(default=None, alias="BAAS_API_KEY")
    baas_timeout: float = Field(default=20.0, alias="BAAS_TIMEOUT")
    baas_photo_bucket: str = Field(default="photos", alias="BAAS_PHOTO_BUCKET")

    # Offline queue
    offline_storage_backend: str = Field(default="sql", alias="OFFLINE_STORAGE_BACKEND")
    offline_queue_max_retries: int = Field(default=3, alias="OFFLINE_QUEUE_MAX_RETRIES")
    offline_queue_dedupe: bool = Field(default=False, alias="OFFLINE_QUEUE_DEDUPE")
    offline_drain_concurrency: int = Field(default=1, alias="OFFLINE_DRAIN_CONCURRENCY")
    offline_action_timeout_seconds: float = Field(default=30.0, alias="OFFLINE_ACTION_TIMEOUT_SECONDS")

    # Offline cache
    offline_cache_ttl_ms: int = Field(default=24 * 60 * 60 * 1000, alias="OFFLINE_CACHE_TTL_MS")

    # Connectivity probe; leaving the URL unset keeps the monitor push-only
    connectivity_probe_url: str | None = Field(default=None, alias="CONNECTIVITY_PROBE_URL")
    connectivity_probe_interval: float = Field(default=15.0, alias="CONNECTIVITY_PROBE_INTERVAL")
    connectivity_probe_timeout: float = Field(default=5.0, alias="CONNECTIVITY_PROBE_TIMEOUT")

    model_config = SettingsConfigDict(env_file=str(DOTENV_FILE), env_file_encoding="utf-8", extra="ignore")

    @property
    def allowed_origins(self) -> list[str]:
        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
        return origins or ["*"]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
