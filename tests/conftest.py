"""Shared test fixtures."""

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from ingredient_registry.config import Settings
from ingredient_registry.containers import AppContainer
from ingredient_registry.domain.registry import LocalState
from ingredient_registry.domain.serialization import (
    decode_local_state,
    encode_local_state,
)
from ingredient_registry.errors import RemoteDocumentNotFoundError
from ingredient_registry.services.local_state import LocalStateStore
from ingredient_registry.services.registry import CategoryDeletePolicy, RegistryService
from ingredient_registry.services.synchronizer import (
    RegistrySynchronizer,
    RemoteDocumentHandle,
    RemoteDocumentStore,
)

REGISTRY_NAME = "ingredients-registry.json"
FOLDER_ID = "folder-id"


@dataclass
class FakeClock:
    """Clock advancing one second per reading."""

    start: datetime = field(
        default_factory=lambda: datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    )
    readings: int = 0

    def __call__(self) -> datetime:
        value = self.start + timedelta(seconds=self.readings)
        self.readings += 1
        return value


@dataclass
class InMemoryLocalStateStore(LocalStateStore):
    """Local state store that keeps serialized records in memory."""

    records: dict[str, str] = field(default_factory=dict)
    saves: int = 0

    def load(self, registry_name: str) -> LocalState:
        record = self.records.get(registry_name)
        if record is None:
            return LocalState()
        return decode_local_state(record)

    def save(self, registry_name: str, state: LocalState) -> None:
        self.records[registry_name] = encode_local_state(state)
        self.saves += 1


@dataclass
class _StoredDocument:
    id: str
    container_id: str
    text: str
    revision: int = 1


@dataclass
class FakeRemoteDocumentStore(RemoteDocumentStore):
    """In-memory remote store with per-method failure injection."""

    documents: dict[str, _StoredDocument] = field(default_factory=dict)
    failures: dict[str, Exception] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def put(self, name: str, text: str, container_id: str = FOLDER_ID) -> None:
        """Seed or overwrite a document, bumping its revision."""
        existing = self.documents.get(name)
        if existing is None:
            self.documents[name] = _StoredDocument(
                id=f"file-{next(self._ids)}", container_id=container_id, text=text
            )
            return
        existing.text = text
        existing.revision += 1

    def text(self, name: str = REGISTRY_NAME) -> str:
        return self.documents[name].text

    async def find(
        self, name: str, container_id: str
    ) -> RemoteDocumentHandle | None:
        await self._record("find")
        document = self.documents.get(name)
        if document is None or document.container_id != container_id:
            return None
        return RemoteDocumentHandle(
            id=document.id, name=name, revision=str(document.revision)
        )

    async def read(self, handle: RemoteDocumentHandle) -> str:
        await self._record("read")
        document = self.documents.get(handle.name)
        if document is None:
            raise RemoteDocumentNotFoundError(handle.id)
        return document.text

    async def create(
        self, name: str, text: str, container_id: str
    ) -> RemoteDocumentHandle:
        await self._record("create")
        self.put(name, text, container_id)
        return await self._handle(name)

    async def update(
        self, handle: RemoteDocumentHandle, text: str
    ) -> RemoteDocumentHandle:
        await self._record("update")
        self.put(handle.name, text)
        return await self._handle(handle.name)

    async def _handle(self, name: str) -> RemoteDocumentHandle:
        document = self.documents[name]
        return RemoteDocumentHandle(
            id=document.id, name=name, revision=str(document.revision)
        )

    async def _record(self, method: str) -> None:
        await asyncio.sleep(0)
        self.calls.append(method)
        failure = self.failures.get(method)
        if failure is not None:
            raise failure


def build_service(
    local_store: InMemoryLocalStateStore,
    remote_store: FakeRemoteDocumentStore,
    *,
    clock: FakeClock | None = None,
    detect_stale_writes: bool = False,
    category_delete_policy: CategoryDeletePolicy = CategoryDeletePolicy.REJECT,
) -> RegistryService:
    """Wire a registry service over in-memory collaborators."""
    resolved_clock = clock or FakeClock()
    synchronizer = RegistrySynchronizer(
        local_store=local_store,
        remote_store=remote_store,
        registry_name=REGISTRY_NAME,
        container_id=FOLDER_ID,
        detect_stale_writes=detect_stale_writes,
        clock=resolved_clock,
    )
    return RegistryService(
        local_store=local_store,
        synchronizer=synchronizer,
        category_delete_policy=category_delete_policy,
        clock=resolved_clock,
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        admin_token="admin-token",
        google_access_token="google-token",
        local_state_dir=str(tmp_path / "state"),
        sync_on_startup=False,
    )


@pytest.fixture
def local_store() -> InMemoryLocalStateStore:
    return InMemoryLocalStateStore()


@pytest.fixture
def remote_store() -> FakeRemoteDocumentStore:
    return FakeRemoteDocumentStore()


@pytest.fixture
def service(
    local_store: InMemoryLocalStateStore, remote_store: FakeRemoteDocumentStore
) -> RegistryService:
    return build_service(local_store, remote_store)


@pytest.fixture
def container(
    settings: Settings,
    local_store: InMemoryLocalStateStore,
    remote_store: FakeRemoteDocumentStore,
    service: RegistryService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        local_store=local_store,
        remote_store=remote_store,
        token_provider=None,
        synchronizer=service.synchronizer,
        registry_service=service,
        close_resources=close_resources,
    )
