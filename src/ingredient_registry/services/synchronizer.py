"""Pull and push of the local registry against the remote document.

The protocol is last-writer-wins at document granularity: ``push`` replaces
whatever the remote holds with the whole of ``current`` and ``pull``
replaces both ``current`` and ``baseline`` with the remote document. There
is no per-field merge. With ``detect_stale_writes`` enabled, ``push``
refuses to overwrite a document whose revision moved since it was last
pulled or pushed.

Only a missing document is recoverable inside ``pull`` (it is replaced by
an empty default). Every other failure propagates with local state left
untouched, so unsynced edits are never discarded by a failed refresh.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from ingredient_registry.domain.registry import LocalState, Registry
from ingredient_registry.domain.serialization import decode_registry, encode_registry
from ingredient_registry.errors import RemoteDocumentNotFoundError, StaleWriteError
from ingredient_registry.services.changes import recompute
from ingredient_registry.services.local_state import LocalStateStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteDocumentHandle:
    """Reference to a document in the remote store."""

    id: str
    name: str
    revision: str | None = None


class RemoteDocumentStore(Protocol):
    """Interface for the remote file store holding registry documents."""

    async def find(
        self, name: str, container_id: str
    ) -> RemoteDocumentHandle | None:
        """Return the named document in a container, if present."""

    async def read(self, handle: RemoteDocumentHandle) -> str:
        """Return the full text of a document."""

    async def create(
        self, name: str, text: str, container_id: str
    ) -> RemoteDocumentHandle:
        """Create a document and return its handle."""

    async def update(
        self, handle: RemoteDocumentHandle, text: str
    ) -> RemoteDocumentHandle:
        """Overwrite a document in full and return its refreshed handle."""


class TokenProvider(Protocol):
    """Interface for obtaining access tokens for the remote store."""

    async def get_valid_token(self) -> str:
        """Return a usable access token or raise ``RemoteAuthError``."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class RegistrySynchronizer:
    """Synchronizes one registry's local state with its remote document.

    Callers are expected to serialize calls against the same registry;
    ``RegistryService`` does so with its lock.
    """

    local_store: LocalStateStore
    remote_store: RemoteDocumentStore
    registry_name: str
    container_id: str
    detect_stale_writes: bool = False
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def pull(self) -> LocalState:
        """Replace local current and baseline with the remote document."""
        state = self.local_store.load(self.registry_name)
        handle = await self.remote_store.find(self.registry_name, self.container_id)
        text: str | None = None
        if handle is not None:
            try:
                text = await self.remote_store.read(handle)
            except RemoteDocumentNotFoundError:
                _logger.info(
                    "Registry %s vanished between lookup and read", self.registry_name
                )
        if handle is None or text is None:
            return await self._create_default(state)

        registry = decode_registry(text)
        self._adopt(state, registry, handle)
        self.local_store.save(self.registry_name, state)
        _logger.info(
            "Pulled registry %s: categories=%s ingredients=%s",
            self.registry_name,
            len(registry.entities.categories),
            len(registry.entities.ingredients),
        )
        return state

    async def push(self) -> LocalState:
        """Overwrite the remote document with local current and advance baseline."""
        state = self.local_store.load(self.registry_name)
        snapshot = state.current.copy()
        registry = Registry(entities=snapshot, last_updated=self.clock())
        handle = await self.remote_store.find(self.registry_name, self.container_id)
        if handle is not None and self.detect_stale_writes:
            _check_revision(state, handle)
        written = await self._write(registry, handle)

        state.baseline = snapshot.copy()
        state.pending_changes = recompute(
            state.current, state.baseline, state.last_local_update
        )
        state.last_sync_time = registry.last_updated
        state.remote_revision = written.revision
        self.local_store.save(self.registry_name, state)
        _logger.info(
            "Pushed registry %s: categories=%s ingredients=%s",
            self.registry_name,
            len(snapshot.categories),
            len(snapshot.ingredients),
        )
        return state

    async def _create_default(self, state: LocalState) -> LocalState:
        registry = Registry.empty(self.clock())
        handle = await self._write(registry, None)
        self._adopt(state, registry, handle)
        self.local_store.save(self.registry_name, state)
        _logger.info("Created default registry %s", self.registry_name)
        return state

    async def _write(
        self, registry: Registry, handle: RemoteDocumentHandle | None
    ) -> RemoteDocumentHandle:
        text = encode_registry(registry)
        if handle is None:
            return await self.remote_store.create(
                self.registry_name, text, self.container_id
            )
        return await self.remote_store.update(handle, text)

    @staticmethod
    def _adopt(
        state: LocalState, registry: Registry, handle: RemoteDocumentHandle
    ) -> None:
        state.current = registry.entities.copy()
        state.baseline = registry.entities.copy()
        state.pending_changes = []
        state.last_sync_time = registry.last_updated
        state.remote_revision = handle.revision


def _check_revision(state: LocalState, handle: RemoteDocumentHandle) -> None:
    """Raise when the remote revision moved since this client last synced."""
    if state.remote_revision is None or handle.revision is None:
        return
    if state.remote_revision != handle.revision:
        raise StaleWriteError(expected=state.remote_revision, actual=handle.revision)
