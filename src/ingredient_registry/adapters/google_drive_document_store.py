"""Google Drive v3 implementation of the remote document store."""

import asyncio
import json
import logging
from dataclasses import dataclass
from uuid import uuid4

import httpx

from ingredient_registry.errors import (
    RemoteAuthError,
    RemoteDocumentNotFoundError,
    RemoteStoreError,
    RemoteStoreUnavailableError,
)
from ingredient_registry.services.synchronizer import (
    RemoteDocumentHandle,
    RemoteDocumentStore,
    TokenProvider,
)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
_JSON_MIME_TYPE = "application/json"
_FILE_FIELDS = "id, name, version"
_RETRYABLE_METHODS = frozenset({"GET", "PATCH"})

_logger = logging.getLogger(__name__)


@dataclass
class HttpxGoogleDriveDocumentStore(RemoteDocumentStore):
    """Registry documents stored as JSON files in a Drive folder.

    A fresh token is requested from the token provider for every HTTP
    request. Transient failures of idempotent requests are retried.
    """

    token_provider: TokenProvider
    http_client: httpx.AsyncClient
    api_url: str = DRIVE_API_URL
    upload_url: str = DRIVE_UPLOAD_URL
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    @classmethod
    def build(
        cls,
        token_provider: TokenProvider,
        api_url: str = DRIVE_API_URL,
        upload_url: str = DRIVE_UPLOAD_URL,
        retry_attempts: int = 1,
    ) -> "HttpxGoogleDriveDocumentStore":
        """Create a Drive store with a managed httpx session."""
        return cls(
            token_provider=token_provider,
            http_client=httpx.AsyncClient(),
            api_url=api_url,
            upload_url=upload_url,
            retry_attempts=retry_attempts,
        )

    async def find(
        self, name: str, container_id: str
    ) -> RemoteDocumentHandle | None:
        """Find a non-trashed file by name inside a folder."""
        query = (
            f"name='{_escape(name)}' and '{_escape(container_id)}' in parents "
            "and trashed=false"
        )
        response = await self._request(
            "GET",
            f"{self.api_url}/files",
            action=f"find:{name}",
            params={"q": query, "fields": f"files({_FILE_FIELDS})", "spaces": "drive"},
        )
        files = response.json().get("files") or []
        if not files:
            return None
        return _parse_handle(files[0])

    async def read(self, handle: RemoteDocumentHandle) -> str:
        """Download a file's content as text."""
        response = await self._request(
            "GET",
            f"{self.api_url}/files/{handle.id}",
            action=f"read:{handle.name}",
            params={"alt": "media"},
        )
        return response.text

    async def create(
        self, name: str, text: str, container_id: str
    ) -> RemoteDocumentHandle:
        """Create a JSON file with a multipart upload."""
        boundary = f"registry-{uuid4().hex}"
        metadata = {"name": name, "parents": [container_id], "mimeType": _JSON_MIME_TYPE}
        body = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {_JSON_MIME_TYPE}\r\n\r\n"
            f"{text}\r\n"
            f"--{boundary}--"
        )
        response = await self._request(
            "POST",
            f"{self.upload_url}/files",
            action=f"create:{name}",
            params={"uploadType": "multipart", "fields": _FILE_FIELDS},
            content=body.encode("utf-8"),
            headers={"Content-Type": f'multipart/related; boundary="{boundary}"'},
        )
        return _parse_handle(response.json())

    async def update(
        self, handle: RemoteDocumentHandle, text: str
    ) -> RemoteDocumentHandle:
        """Replace a file's content in full."""
        response = await self._request(
            "PATCH",
            f"{self.upload_url}/files/{handle.id}",
            action=f"update:{handle.name}",
            params={"uploadType": "media", "fields": _FILE_FIELDS},
            content=text.encode("utf-8"),
            headers={"Content-Type": _JSON_MIME_TYPE},
        )
        return _parse_handle(response.json())

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        action: str,
        headers: dict[str, str] | None = None,
        **kwargs: object,
    ) -> httpx.Response:
        """Send an authorized request, retrying transient failures."""
        attempt = 0
        while True:
            try:
                return await self._send(method, url, headers=headers, **kwargs)
            except RemoteStoreUnavailableError as exc:
                attempt += 1
                retryable = method in _RETRYABLE_METHODS
                _logger.warning(
                    "Drive %s failed (attempt %s/%s): %s",
                    action,
                    attempt,
                    self.retry_attempts + 1 if retryable else 1,
                    exc,
                )
                if not retryable or attempt > self.retry_attempts:
                    raise
                await asyncio.sleep(self.retry_delay_seconds)

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None,
        **kwargs: object,
    ) -> httpx.Response:
        token = await self.token_provider.get_valid_token()
        try:
            response = await self.http_client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}", **(headers or {})},
                timeout=15,
                **kwargs,
            )
        except httpx.TransportError as exc:
            raise RemoteStoreUnavailableError(f"Drive request failed: {exc}") from exc
        _raise_for_status(response)
        return response


def _raise_for_status(response: httpx.Response) -> None:
    """Translate Drive error responses into registry errors."""
    status_code = response.status_code
    if status_code < 400:
        return
    detail = f"Drive returned {status_code} for {response.request.url.path}"
    if status_code == 404:
        raise RemoteDocumentNotFoundError(detail)
    if status_code == 429 or status_code >= 500 or _is_rate_limited(response):
        raise RemoteStoreUnavailableError(detail)
    if status_code in {401, 403}:
        raise RemoteAuthError(detail)
    raise RemoteStoreError(detail)


def _is_rate_limited(response: httpx.Response) -> bool:
    """Drive reports per-user rate limits as 403 with a reason code."""
    return (
        response.status_code == 403 and "ratelimitexceeded" in response.text.lower()
    )


def _parse_handle(row: dict[str, object]) -> RemoteDocumentHandle:
    version = row.get("version")
    return RemoteDocumentHandle(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        revision=str(version) if version is not None else None,
    )


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")
