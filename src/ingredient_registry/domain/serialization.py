"""JSON codecs for registry documents and the local state record.

Both formats use camelCase keys so documents written by other registry
clients load unchanged. Any structural problem surfaces as
``CorruptRegistryError``; callers never receive a partially parsed object.
"""

import json
from datetime import UTC, datetime

from ingredient_registry.domain.registry import (
    REGISTRY_VERSION,
    Category,
    ChangeOperation,
    Entity,
    EntityKind,
    EntityMaps,
    Ingredient,
    LocalState,
    PendingChange,
    Registry,
)
from ingredient_registry.errors import CorruptRegistryError
from ingredient_registry.services.changes import recompute

_OPTIONAL_CATEGORY_FIELDS = ("description", "color", "icon")


def format_timestamp(value: datetime) -> str:
    """Format a timestamp as ISO-8601 in UTC."""
    return value.astimezone(UTC).isoformat()


def parse_timestamp(raw: object) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if not isinstance(raw, str) or not raw:
        raise CorruptRegistryError(f"Invalid timestamp: {raw!r}")
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise CorruptRegistryError(f"Invalid timestamp: {raw!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def category_to_dict(category: Category) -> dict[str, object]:
    """Serialize a category, omitting unset optional fields."""
    payload: dict[str, object] = {"id": category.id, "name": category.name}
    for name in _OPTIONAL_CATEGORY_FIELDS:
        value = getattr(category, name)
        if value is not None:
            payload[name] = value
    return payload


def ingredient_to_dict(ingredient: Ingredient) -> dict[str, object]:
    """Serialize an ingredient with its embedded category."""
    payload: dict[str, object] = {
        "id": ingredient.id,
        "name": ingredient.name,
        "category": category_to_dict(ingredient.category),
        "defaultUnit": ingredient.default_unit,
        "alternativeNames": list(ingredient.alternative_names),
        "tags": list(ingredient.tags),
        "createdAt": format_timestamp(ingredient.created_at),
        "updatedAt": format_timestamp(ingredient.updated_at),
    }
    optional = {
        "description": ingredient.description,
        "storageInfo": ingredient.storage_info,
        "nutritionInfo": ingredient.nutrition_info,
        "purchaseInfo": ingredient.purchase_info,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})
    return payload


def entity_to_dict(entity: Entity) -> dict[str, object]:
    """Serialize either kind of entity."""
    if isinstance(entity, Ingredient):
        return ingredient_to_dict(entity)
    return category_to_dict(entity)


def parse_category(row: object) -> Category:
    """Parse a category object."""
    if not isinstance(row, dict):
        raise CorruptRegistryError(f"Category must be an object, got {row!r}")
    try:
        return Category(
            id=str(row["id"]),
            name=str(row["name"]),
            description=_optional_str(row.get("description")),
            color=_optional_str(row.get("color")),
            icon=_optional_str(row.get("icon")),
        )
    except KeyError as exc:
        raise CorruptRegistryError(f"Category missing field {exc}") from exc


def parse_ingredient(
    row: object, categories: dict[str, Category] | None = None
) -> Ingredient:
    """Parse an ingredient object.

    Older documents stored the category as a bare id; those are resolved
    against ``categories`` when given.
    """
    if not isinstance(row, dict):
        raise CorruptRegistryError(f"Ingredient must be an object, got {row!r}")
    try:
        raw_category = row["category"]
        if isinstance(raw_category, str):
            if not categories or raw_category not in categories:
                raise CorruptRegistryError(
                    f"Ingredient {row.get('id')} references unknown category "
                    f"{raw_category}"
                )
            category = categories[raw_category]
        else:
            category = parse_category(raw_category)
        return Ingredient(
            id=str(row["id"]),
            name=str(row["name"]),
            category=category,
            default_unit=str(row.get("defaultUnit", "")),
            created_at=parse_timestamp(row["createdAt"]),
            updated_at=parse_timestamp(row["updatedAt"]),
            alternative_names=_str_list(row.get("alternativeNames")),
            description=_optional_str(row.get("description")),
            storage_info=_optional_mapping(row.get("storageInfo")),
            nutrition_info=_optional_mapping(row.get("nutritionInfo")),
            purchase_info=_optional_mapping(row.get("purchaseInfo")),
            tags=_str_list(row.get("tags")),
        )
    except KeyError as exc:
        raise CorruptRegistryError(f"Ingredient missing field {exc}") from exc


def entity_maps_to_dict(maps: EntityMaps) -> dict[str, object]:
    """Serialize both entity maps."""
    return {
        "ingredients": {
            key: ingredient_to_dict(value) for key, value in maps.ingredients.items()
        },
        "categories": {
            key: category_to_dict(value) for key, value in maps.categories.items()
        },
    }


def parse_entity_maps(payload: dict[str, object]) -> EntityMaps:
    """Parse the ``categories`` and ``ingredients`` maps of a payload."""
    raw_categories = _mapping(payload.get("categories", {}), "categories")
    raw_ingredients = _mapping(payload.get("ingredients", {}), "ingredients")
    categories = {key: parse_category(row) for key, row in raw_categories.items()}
    ingredients = {
        key: parse_ingredient(row, categories) for key, row in raw_ingredients.items()
    }
    return EntityMaps(categories=categories, ingredients=ingredients)


def encode_registry(registry: Registry) -> str:
    """Render a registry as the remote JSON document."""
    document = {
        **entity_maps_to_dict(registry.entities),
        "version": registry.version,
        "lastUpdated": format_timestamp(registry.last_updated),
        "metadata": registry.metadata,
    }
    return json.dumps(document, indent=2)


def decode_registry(text: str) -> Registry:
    """Parse the remote JSON document into a registry."""
    payload = _load_json_object(text, "registry document")
    return Registry(
        entities=parse_entity_maps(payload),
        last_updated=parse_timestamp(payload.get("lastUpdated")),
        version=str(payload.get("version", REGISTRY_VERSION)),
    )


def pending_change_to_dict(change: PendingChange) -> dict[str, object]:
    """Serialize a pending change."""
    return {
        "id": change.entity_id,
        "kind": change.kind.value,
        "operation": change.operation.value,
        "timestamp": format_timestamp(change.timestamp),
        "snapshot": entity_to_dict(change.snapshot),
    }


def parse_pending_change(row: object) -> PendingChange:
    """Parse a pending change."""
    if not isinstance(row, dict):
        raise CorruptRegistryError(f"Pending change must be an object, got {row!r}")
    try:
        kind = EntityKind(row["kind"])
        snapshot: Entity = (
            parse_ingredient(row["snapshot"])
            if kind is EntityKind.INGREDIENT
            else parse_category(row["snapshot"])
        )
        return PendingChange(
            entity_id=str(row["id"]),
            kind=kind,
            operation=ChangeOperation(row["operation"]),
            timestamp=parse_timestamp(row["timestamp"]),
            snapshot=snapshot,
        )
    except (KeyError, ValueError) as exc:
        raise CorruptRegistryError(f"Invalid pending change: {exc}") from exc


def encode_local_state(state: LocalState) -> str:
    """Render the local state record."""
    record = {
        "current": entity_maps_to_dict(state.current),
        "baseline": entity_maps_to_dict(state.baseline),
        "pendingChanges": [
            pending_change_to_dict(change) for change in state.pending_changes
        ],
        "lastLocalUpdate": format_timestamp(state.last_local_update),
        "lastSyncTime": (
            format_timestamp(state.last_sync_time) if state.last_sync_time else None
        ),
        "remoteRevision": state.remote_revision,
    }
    return json.dumps(record, indent=2)


def decode_local_state(text: str) -> LocalState:
    """Parse the local state record.

    Records written before baselines were tracked carry no ``baseline``
    key and load with empty baselines. Stored pending changes are
    validated but never trusted: they are derived again from ``current``
    and ``baseline``.
    """
    payload = _load_json_object(text, "local state")
    last_sync_raw = payload.get("lastSyncTime")
    raw_pending = payload.get("pendingChanges", [])
    if not isinstance(raw_pending, list):
        raise CorruptRegistryError("pendingChanges must be a list")
    for row in raw_pending:
        parse_pending_change(row)
    revision = payload.get("remoteRevision")
    current = parse_entity_maps(_mapping(payload.get("current", {}), "current"))
    baseline = parse_entity_maps(_mapping(payload.get("baseline", {}), "baseline"))
    last_local_update = parse_timestamp(payload.get("lastLocalUpdate"))
    return LocalState(
        current=current,
        baseline=baseline,
        pending_changes=recompute(current, baseline, last_local_update),
        last_local_update=last_local_update,
        last_sync_time=parse_timestamp(last_sync_raw) if last_sync_raw else None,
        remote_revision=str(revision) if revision is not None else None,
    )


def _load_json_object(text: str, label: str) -> dict[str, object]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptRegistryError(f"Malformed {label}: {exc}") from exc
    if not isinstance(payload, dict):
        raise CorruptRegistryError(f"Malformed {label}: expected a JSON object")
    return payload


def _mapping(value: object, label: str) -> dict[str, object]:
    if not isinstance(value, dict):
        raise CorruptRegistryError(f"{label} must be an object")
    return value


def _optional_mapping(value: object) -> dict[str, object] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise CorruptRegistryError(f"Expected an object, got {value!r}")
    return value


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)


def _str_list(value: object) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise CorruptRegistryError(f"Expected a list, got {value!r}")
    return [str(item) for item in value]
