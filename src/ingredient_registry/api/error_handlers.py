"""Exception handlers mapping registry errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ingredient_registry.errors import (
    CategoryInUseError,
    CategoryNotFoundError,
    CorruptRegistryError,
    EntityExistsError,
    EntityNotFoundError,
    InvalidPayloadError,
    RegistryError,
    RemoteStoreUnavailableError,
    StaleWriteError,
)

_logger = logging.getLogger(__name__)

# Checked in order; subclasses before their bases.
_STATUS_BY_ERROR: tuple[tuple[type[RegistryError], int], ...] = (
    (EntityNotFoundError, status.HTTP_404_NOT_FOUND),
    (CategoryNotFoundError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidPayloadError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (EntityExistsError, status.HTTP_409_CONFLICT),
    (CategoryInUseError, status.HTTP_409_CONFLICT),
    (StaleWriteError, status.HTTP_409_CONFLICT),
    (RemoteStoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (CorruptRegistryError, status.HTTP_502_BAD_GATEWAY),
)


def status_for_error(exc: RegistryError) -> int:
    """Return the HTTP status code for a registry error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_502_BAD_GATEWAY


def register_error_handlers(app: FastAPI) -> None:
    """Register the registry error handler on the app."""

    @app.exception_handler(RegistryError)
    async def registry_error_handler(
        request: Request, exc: RegistryError
    ) -> JSONResponse:
        status_code = status_for_error(exc)
        log = _logger.warning if status_code < 500 else _logger.error
        log("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )
