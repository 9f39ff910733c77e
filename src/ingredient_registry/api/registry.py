"""Registry API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status

from ingredient_registry.api.registry_models import (
    CategoryCreateRequest,
    CategoryUpdateRequest,
    IngredientCreateRequest,
    IngredientUpdateRequest,
)
from ingredient_registry.domain.registry import RegistryStatus
from ingredient_registry.domain.serialization import (
    category_to_dict,
    format_timestamp,
    ingredient_to_dict,
    pending_change_to_dict,
)

if TYPE_CHECKING:
    from ingredient_registry.containers import AppContainer
    from ingredient_registry.services.registry import RegistryService


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


router = APIRouter(
    prefix="/registry", tags=["registry"], dependencies=[Depends(require_admin)]
)


def _service(request: Request) -> RegistryService:
    container: AppContainer = request.app.state.container
    return container.registry_service


@router.get("/status")
async def registry_status(request: Request) -> dict[str, object]:
    """Return the registry's sync status."""
    return format_status(_service(request).status())


@router.get("/categories")
async def list_categories(request: Request) -> dict[str, object]:
    """Return all local categories."""
    categories = _service(request).list_categories()
    return {"categories": [category_to_dict(category) for category in categories]}


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreateRequest, request: Request
) -> dict[str, object]:
    """Create a category locally."""
    category = await _service(request).create_category(
        payload.model_dump(exclude_none=True)
    )
    return category_to_dict(category)


@router.patch("/categories/{category_id}")
async def update_category(
    category_id: str, payload: CategoryUpdateRequest, request: Request
) -> dict[str, object]:
    """Update a category locally."""
    category = await _service(request).update_category(
        category_id, payload.model_dump(exclude_unset=True)
    )
    return category_to_dict(category)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: str, request: Request) -> Response:
    """Delete a category locally."""
    await _service(request).delete_category(category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/ingredients")
async def list_ingredients(request: Request) -> dict[str, object]:
    """Return all local ingredients."""
    ingredients = _service(request).list_ingredients()
    return {
        "ingredients": [ingredient_to_dict(ingredient) for ingredient in ingredients]
    }


@router.get("/ingredients/{ingredient_id}")
async def get_ingredient(ingredient_id: str, request: Request) -> dict[str, object]:
    """Return one ingredient."""
    ingredient = _service(request).get_ingredient(ingredient_id)
    if ingredient is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return ingredient_to_dict(ingredient)


@router.post("/ingredients", status_code=status.HTTP_201_CREATED)
async def create_ingredient(
    payload: IngredientCreateRequest, request: Request
) -> dict[str, object]:
    """Create an ingredient locally."""
    ingredient = await _service(request).create_ingredient(
        payload.model_dump(exclude_none=True)
    )
    return ingredient_to_dict(ingredient)


@router.patch("/ingredients/{ingredient_id}")
async def update_ingredient(
    ingredient_id: str, payload: IngredientUpdateRequest, request: Request
) -> dict[str, object]:
    """Update an ingredient locally."""
    ingredient = await _service(request).update_ingredient(
        ingredient_id, payload.model_dump(exclude_unset=True)
    )
    return ingredient_to_dict(ingredient)


@router.delete("/ingredients/{ingredient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ingredient(ingredient_id: str, request: Request) -> Response:
    """Delete an ingredient locally."""
    await _service(request).delete_ingredient(ingredient_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/pending-changes")
async def pending_changes(request: Request) -> dict[str, object]:
    """Return changes not yet pushed."""
    changes = _service(request).pending_changes()
    return {"pending_changes": [pending_change_to_dict(change) for change in changes]}


@router.post("/push")
async def push(request: Request) -> dict[str, object]:
    """Push local state to the remote registry."""
    return format_status(await _service(request).save())


@router.post("/pull")
async def pull(request: Request) -> dict[str, object]:
    """Replace local state with the remote registry."""
    return format_status(await _service(request).refresh())


def format_status(registry_status: RegistryStatus) -> dict[str, object]:
    """Render a registry status as JSON."""
    last_sync = registry_status.last_sync_time
    return {
        "status": registry_status.status.value,
        "pending_changes": registry_status.pending_changes,
        "total_categories": registry_status.total_categories,
        "total_ingredients": registry_status.total_ingredients,
        "last_local_update": format_timestamp(registry_status.last_local_update),
        "last_sync_time": format_timestamp(last_sync) if last_sync else None,
    }
