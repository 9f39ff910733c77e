"""Tests for container wiring."""

import asyncio

import pytest

from ingredient_registry.adapters.google_drive_document_store import (
    HttpxGoogleDriveDocumentStore,
)
from ingredient_registry.adapters.json_file_state_store import JsonFileLocalStateStore
from ingredient_registry.config import parse_category_delete_policy, parse_remote_backend
from ingredient_registry.containers import build_container
from ingredient_registry.services.registry import CategoryDeletePolicy


def test_build_container_wires_drive_backend(settings) -> None:
    container = build_container(settings)

    assert isinstance(container.remote_store, HttpxGoogleDriveDocumentStore)
    assert isinstance(container.local_store, JsonFileLocalStateStore)
    assert container.registry_service.synchronizer is container.synchronizer
    assert container.synchronizer.container_id == "root"
    assert container.synchronizer.registry_name == "ingredients-registry.json"
    assert (
        container.registry_service.category_delete_policy
        is CategoryDeletePolicy.REJECT
    )
    asyncio.run(container.close_resources())


def test_build_container_applies_delete_policy_and_stale_detection(settings) -> None:
    settings.category_delete_policy = "cascade"
    settings.detect_stale_writes = True

    container = build_container(settings)

    assert (
        container.registry_service.category_delete_policy
        is CategoryDeletePolicy.CASCADE
    )
    assert container.synchronizer.detect_stale_writes is True
    asyncio.run(container.close_resources())


def test_supabase_backend_requires_credentials(settings) -> None:
    settings.remote_backend = "supabase"

    with pytest.raises(ValueError):
        build_container(settings)


def test_parse_remote_backend_normalizes_names() -> None:
    assert parse_remote_backend("Google-Drive") == "google_drive"
    with pytest.raises(ValueError):
        parse_remote_backend("dropbox")


def test_parse_category_delete_policy_rejects_unknown() -> None:
    assert parse_category_delete_policy(" Cascade ") is CategoryDeletePolicy.CASCADE
    with pytest.raises(ValueError):
        parse_category_delete_policy("ignore")
