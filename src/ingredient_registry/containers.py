"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import create_client

from ingredient_registry.adapters.google_drive_document_store import (
    HttpxGoogleDriveDocumentStore,
)
from ingredient_registry.adapters.json_file_state_store import JsonFileLocalStateStore
from ingredient_registry.adapters.static_token_provider import StaticTokenProvider
from ingredient_registry.adapters.supabase_document_store import (
    SupabaseStorageDocumentStore,
)
from ingredient_registry.config import (
    Settings,
    parse_category_delete_policy,
    parse_remote_backend,
)
from ingredient_registry.services.local_state import LocalStateStore
from ingredient_registry.services.registry import RegistryService
from ingredient_registry.services.synchronizer import (
    RegistrySynchronizer,
    RemoteDocumentStore,
    TokenProvider,
)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    local_store: LocalStateStore
    remote_store: RemoteDocumentStore
    token_provider: TokenProvider | None
    synchronizer: RegistrySynchronizer
    registry_service: RegistryService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    backend = parse_remote_backend(resolved_settings.remote_backend)
    local_store = JsonFileLocalStateStore(Path(resolved_settings.local_state_dir))

    token_provider: TokenProvider | None = None
    drive_store: HttpxGoogleDriveDocumentStore | None = None
    remote_store: RemoteDocumentStore
    if backend == "supabase":
        if not (
            resolved_settings.supabase_url and resolved_settings.supabase_service_key
        ):
            raise ValueError(
                "Supabase backend requires SUPABASE_URL and SUPABASE_SERVICE_KEY"
            )
        supabase_client = create_client(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )
        remote_store = SupabaseStorageDocumentStore(
            client=supabase_client, bucket=resolved_settings.supabase_bucket
        )
        container_id = resolved_settings.supabase_folder
    else:
        token_provider = StaticTokenProvider(resolved_settings.google_access_token)
        drive_store = HttpxGoogleDriveDocumentStore.build(
            token_provider=token_provider,
            api_url=resolved_settings.google_drive_api_url,
            upload_url=resolved_settings.google_drive_upload_url,
            retry_attempts=resolved_settings.remote_retry_attempts,
        )
        remote_store = drive_store
        container_id = resolved_settings.google_drive_folder_id

    synchronizer = RegistrySynchronizer(
        local_store=local_store,
        remote_store=remote_store,
        registry_name=resolved_settings.registry_name,
        container_id=container_id,
        detect_stale_writes=resolved_settings.detect_stale_writes,
    )
    registry_service = RegistryService(
        local_store=local_store,
        synchronizer=synchronizer,
        category_delete_policy=parse_category_delete_policy(
            resolved_settings.category_delete_policy
        ),
    )

    async def close_resources() -> None:
        if drive_store is not None:
            await drive_store.close()

    return AppContainer(
        settings=resolved_settings,
        local_store=local_store,
        remote_store=remote_store,
        token_provider=token_provider,
        synchronizer=synchronizer,
        registry_service=registry_service,
        close_resources=close_resources,
    )
