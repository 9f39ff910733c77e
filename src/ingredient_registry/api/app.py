"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ingredient_registry.api.error_handlers import register_error_handlers
from ingredient_registry.api.registry import router as registry_router
from ingredient_registry.app_logging import configure_logging
from ingredient_registry.containers import AppContainer
from ingredient_registry.errors import RegistryError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        if state_container.settings.sync_on_startup:
            try:
                registry_status = await state_container.registry_service.initialize()
                logger.info(
                    "Registry %s ready: status=%s pending=%s",
                    state_container.registry_service.registry_name,
                    registry_status.status.value,
                    registry_status.pending_changes,
                )
            except RegistryError:
                logger.exception("Failed to initialize registry; serving local state")
        yield
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    register_error_handlers(app)
    app.include_router(registry_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
