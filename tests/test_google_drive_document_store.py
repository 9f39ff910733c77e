"""Tests for the Google Drive document store."""

import asyncio
import json
from dataclasses import dataclass

import httpx
import pytest

from ingredient_registry.adapters.google_drive_document_store import (
    HttpxGoogleDriveDocumentStore,
)
from ingredient_registry.adapters.static_token_provider import StaticTokenProvider
from ingredient_registry.errors import (
    RemoteAuthError,
    RemoteDocumentNotFoundError,
    RemoteStoreError,
    RemoteStoreUnavailableError,
)
from ingredient_registry.services.synchronizer import RemoteDocumentHandle, TokenProvider

HANDLE = RemoteDocumentHandle(id="file-1", name="ingredients-registry.json")


@dataclass
class CountingTokenProvider(TokenProvider):
    calls: int = 0

    async def get_valid_token(self) -> str:
        self.calls += 1
        return f"token-{self.calls}"


def _store(handler, token_provider=None, retry_attempts=1):  # type: ignore[no-untyped-def]
    return HttpxGoogleDriveDocumentStore(
        token_provider=token_provider or StaticTokenProvider("token"),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_attempts=retry_attempts,
        retry_delay_seconds=0,
    )


def test_find_queries_folder_and_parses_version() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "files": [
                    {"id": "file-1", "name": "ingredients-registry.json", "version": "12"}
                ]
            },
        )

    handle = asyncio.run(_store(handler).find("ingredients-registry.json", "folder-1"))

    assert handle == RemoteDocumentHandle(
        id="file-1", name="ingredients-registry.json", revision="12"
    )
    request = seen[0]
    assert request.url.path == "/drive/v3/files"
    assert request.url.params["q"] == (
        "name='ingredients-registry.json' and 'folder-1' in parents and trashed=false"
    )
    assert request.headers["Authorization"] == "Bearer token"


def test_find_returns_none_when_no_files() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"files": []})

    assert asyncio.run(_store(handler).find("missing.json", "root")) is None


def test_find_escapes_quotes_in_names() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params["q"])
        return httpx.Response(200, json={"files": []})

    asyncio.run(_store(handler).find("chef's.json", "root"))

    assert seen[0].startswith("name='chef\\'s.json'")


def test_read_downloads_media() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/drive/v3/files/file-1"
        assert request.url.params["alt"] == "media"
        return httpx.Response(200, text='{"categories": {}}')

    assert asyncio.run(_store(handler).read(HANDLE)) == '{"categories": {}}'


def test_create_sends_multipart_upload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"id": "file-9", "name": "ingredients-registry.json", "version": "1"},
        )

    handle = asyncio.run(
        _store(handler).create("ingredients-registry.json", '{"a": 1}', "folder-1")
    )

    assert handle.id == "file-9"
    assert handle.revision == "1"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/upload/drive/v3/files"
    assert request.url.params["uploadType"] == "multipart"
    assert request.headers["Content-Type"].startswith("multipart/related; boundary=")
    body = request.content.decode("utf-8")
    metadata_part = body.split("\r\n\r\n")[1].split("\r\n")[0]
    assert json.loads(metadata_part) == {
        "name": "ingredients-registry.json",
        "parents": ["folder-1"],
        "mimeType": "application/json",
    }
    assert '{"a": 1}' in body


def test_update_patches_media() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"id": "file-1", "name": "ingredients-registry.json", "version": "5"}
        )

    handle = asyncio.run(_store(handler).update(HANDLE, '{"b": 2}'))

    assert handle.revision == "5"
    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.path == "/upload/drive/v3/files/file-1"
    assert request.url.params["uploadType"] == "media"
    assert request.content == b'{"b": 2}'


def test_token_is_requested_for_every_request() -> None:
    tokens: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        tokens.append(request.headers["Authorization"])
        return httpx.Response(200, json={"files": []})

    provider = CountingTokenProvider()
    store = _store(handler, token_provider=provider)

    async def run() -> None:
        await store.find("a.json", "root")
        await store.find("b.json", "root")

    asyncio.run(run())

    assert tokens == ["Bearer token-1", "Bearer token-2"]


def test_missing_token_raises_auth_error_without_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(RemoteAuthError):
        asyncio.run(_store(handler, token_provider=StaticTokenProvider(None)).read(HANDLE))


@pytest.mark.parametrize(
    ("status_code", "body", "error"),
    [
        (404, "", RemoteDocumentNotFoundError),
        (401, "", RemoteAuthError),
        (403, '{"error": {"errors": [{"reason": "insufficientPermissions"}]}}', RemoteAuthError),
        (403, '{"error": {"errors": [{"reason": "userRateLimitExceeded"}]}}', RemoteStoreUnavailableError),
        (429, "", RemoteStoreUnavailableError),
        (503, "", RemoteStoreUnavailableError),
        (400, "", RemoteStoreError),
    ],
)
def test_error_responses_are_translated(status_code, body, error) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text=body)

    with pytest.raises(error) as excinfo:
        asyncio.run(_store(handler, retry_attempts=0).read(HANDLE))

    assert type(excinfo.value) is error


def test_transport_errors_are_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    with pytest.raises(RemoteStoreUnavailableError):
        asyncio.run(_store(handler, retry_attempts=0).read(HANDLE))


def test_transient_get_is_retried() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            return httpx.Response(503)
        return httpx.Response(200, text="{}")

    assert asyncio.run(_store(handler, retry_attempts=1).read(HANDLE)) == "{}"
    assert len(attempts) == 2


def test_create_is_not_retried() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(503)

    with pytest.raises(RemoteStoreUnavailableError):
        asyncio.run(_store(handler, retry_attempts=3).create("a.json", "{}", "root"))

    assert len(attempts) == 1


def test_not_found_is_not_retried() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(404)

    with pytest.raises(RemoteDocumentNotFoundError):
        asyncio.run(_store(handler, retry_attempts=3).read(HANDLE))

    assert len(attempts) == 1


def test_build_creates_store_with_managed_client() -> None:
    store = HttpxGoogleDriveDocumentStore.build(
        token_provider=StaticTokenProvider("token"),
        api_url="https://drive.example/v3",
        retry_attempts=2,
    )

    assert isinstance(store.http_client, httpx.AsyncClient)
    assert store.api_url == "https://drive.example/v3"
    assert store.retry_attempts == 2
    asyncio.run(store.close())
    assert store.http_client.is_closed
