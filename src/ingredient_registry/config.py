"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from ingredient_registry.adapters.google_drive_document_store import (
    DRIVE_API_URL,
    DRIVE_UPLOAD_URL,
)
from ingredient_registry.services.registry import CategoryDeletePolicy

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

REMOTE_BACKENDS = frozenset({"google_drive", "supabase"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    admin_token: str
    registry_name: str = "ingredients-registry.json"
    local_state_dir: str = ".registry"
    remote_backend: str = "google_drive"
    google_access_token: str | None = None
    google_drive_folder_id: str = "root"
    google_drive_api_url: str = DRIVE_API_URL
    google_drive_upload_url: str = DRIVE_UPLOAD_URL
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    supabase_bucket: str = "registries"
    supabase_folder: str = "ingredients"
    category_delete_policy: str = "reject"
    detect_stale_writes: bool = False
    sync_on_startup: bool = True
    remote_retry_attempts: int = 1
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_remote_backend(raw: str) -> str:
    """Validate the configured remote backend name."""
    cleaned = raw.strip().lower().replace("-", "_")
    if cleaned not in REMOTE_BACKENDS:
        options = ", ".join(sorted(REMOTE_BACKENDS))
        raise ValueError(f"Unknown remote backend {raw!r}; expected one of {options}")
    return cleaned


def parse_category_delete_policy(raw: str) -> CategoryDeletePolicy:
    """Parse the category delete policy from env."""
    try:
        return CategoryDeletePolicy(raw.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown category delete policy {raw!r}") from exc
