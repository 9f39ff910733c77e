"""Supabase Storage implementation of the remote document store."""

import asyncio
from dataclasses import dataclass

from supabase import Client

from ingredient_registry.errors import (
    RemoteAuthError,
    RemoteDocumentNotFoundError,
    RemoteStoreError,
    RemoteStoreUnavailableError,
)
from ingredient_registry.services.synchronizer import (
    RemoteDocumentHandle,
    RemoteDocumentStore,
)

_FILE_OPTIONS = {"content-type": "application/json", "upsert": "false"}


@dataclass
class SupabaseStorageDocumentStore(RemoteDocumentStore):
    """Registry documents stored as objects in a Supabase Storage bucket.

    The container id is the folder prefix inside the bucket. Object eTags
    serve as document revisions.
    """

    client: Client
    bucket: str

    async def find(
        self, name: str, container_id: str
    ) -> RemoteDocumentHandle | None:
        """Find an object by name inside a folder."""
        rows = await self._call(
            lambda: self._bucket().list(container_id, {"search": name})
        )
        for row in rows or []:
            if row.get("name") == name:
                return _parse_handle(container_id, row)
        return None

    async def read(self, handle: RemoteDocumentHandle) -> str:
        """Download an object and decode it as UTF-8."""
        data = await self._call(lambda: self._bucket().download(handle.id))
        return data.decode("utf-8")

    async def create(
        self, name: str, text: str, container_id: str
    ) -> RemoteDocumentHandle:
        """Upload a new object."""
        path = _object_path(container_id, name)
        await self._call(
            lambda: self._bucket().upload(path, text.encode("utf-8"), _FILE_OPTIONS)
        )
        return await self._refreshed(name, container_id, path)

    async def update(
        self, handle: RemoteDocumentHandle, text: str
    ) -> RemoteDocumentHandle:
        """Replace an existing object."""
        await self._call(
            lambda: self._bucket().update(handle.id, text.encode("utf-8"), _FILE_OPTIONS)
        )
        container_id = handle.id.rpartition("/")[0]
        return await self._refreshed(handle.name, container_id, handle.id)

    async def _refreshed(
        self, name: str, container_id: str, path: str
    ) -> RemoteDocumentHandle:
        handle = await self.find(name, container_id)
        return handle or RemoteDocumentHandle(id=path, name=name)

    def _bucket(self):  # type: ignore[no-untyped-def]
        return self.client.storage.from_(self.bucket)

    async def _call(self, func):  # type: ignore[no-untyped-def]
        """Run a blocking storage call off the event loop, translating errors."""
        try:
            return await asyncio.to_thread(func)
        except Exception as exc:
            raise _translate_error(exc) from exc


def _translate_error(exc: Exception) -> RemoteStoreError:
    """Map a storage client exception onto the registry error taxonomy."""
    status_code = _status_code_from_exception(exc)
    if status_code == 404:
        return RemoteDocumentNotFoundError(str(exc))
    if status_code in {401, 403}:
        return RemoteAuthError(str(exc))
    if status_code is not None and 400 <= status_code < 500 and status_code != 429:
        return RemoteStoreError(str(exc))
    return RemoteStoreUnavailableError(str(exc))


def _status_code_from_exception(exc: Exception) -> int | None:
    """Extract an HTTP status code from a storage exception, if available."""
    for attr in ("status", "status_code", "statusCode"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    return status_code if isinstance(status_code, int) else None


def _parse_handle(container_id: str, row: dict[str, object]) -> RemoteDocumentHandle:
    name = str(row["name"])
    metadata = row.get("metadata") or {}
    revision = None
    if isinstance(metadata, dict):
        revision = metadata.get("eTag")
    revision = revision or row.get("updated_at")
    return RemoteDocumentHandle(
        id=_object_path(container_id, name),
        name=name,
        revision=str(revision) if revision is not None else None,
    )


def _object_path(container_id: str, name: str) -> str:
    folder = container_id.strip("/")
    return f"{folder}/{name}" if folder else name
