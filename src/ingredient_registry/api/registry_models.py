"""Pydantic models for registry API payloads."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CategoryCreateRequest(BaseModel):
    """Payload for creating a category."""

    model_config = _CONFIG

    id: str | None = None
    name: str
    description: str | None = None
    color: str | None = None
    icon: str | None = None


class CategoryUpdateRequest(BaseModel):
    """Payload for updating a category; only set fields change."""

    model_config = _CONFIG

    name: str | None = None
    description: str | None = None
    color: str | None = None
    icon: str | None = None


class IngredientCreateRequest(BaseModel):
    """Payload for creating an ingredient."""

    model_config = _CONFIG

    id: str | None = None
    name: str
    category_id: str
    default_unit: str
    alternative_names: list[str] | None = None
    description: str | None = None
    storage_info: dict[str, object] | None = None
    nutrition_info: dict[str, object] | None = None
    purchase_info: dict[str, object] | None = None
    tags: list[str] | None = None


class IngredientUpdateRequest(BaseModel):
    """Payload for updating an ingredient; only set fields change."""

    model_config = _CONFIG

    name: str | None = None
    category_id: str | None = None
    default_unit: str | None = None
    alternative_names: list[str] | None = None
    description: str | None = None
    storage_info: dict[str, object] | None = None
    nutrition_info: dict[str, object] | None = None
    purchase_info: dict[str, object] | None = None
    tags: list[str] | None = None
