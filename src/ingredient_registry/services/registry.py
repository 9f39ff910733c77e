"""Application service for the ingredient registry.

Every mutation loads the full local state, applies the change in memory,
recomputes pending changes against the baseline and saves the full state
back. Mutations and syncs for one registry are serialized by a single
``asyncio.Lock``, so within one process no load-mutate-save cycle can
interleave with another or with a push/pull. Separate processes sharing
the same local file or remote document are not coordinated: the last
write wins.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from ingredient_registry.domain.registry import (
    Category,
    Ingredient,
    LocalState,
    PendingChange,
    RegistryStatus,
    sync_status,
)
from ingredient_registry.errors import (
    CategoryInUseError,
    CategoryNotFoundError,
    EntityExistsError,
    EntityNotFoundError,
    InvalidPayloadError,
)
from ingredient_registry.services.changes import recompute
from ingredient_registry.services.local_state import LocalStateStore
from ingredient_registry.services.synchronizer import RegistrySynchronizer

_CATEGORY_FIELDS = frozenset({"id", "name", "description", "color", "icon"})
_INGREDIENT_FIELDS = frozenset(
    {
        "id",
        "name",
        "category_id",
        "default_unit",
        "alternative_names",
        "description",
        "storage_info",
        "nutrition_info",
        "purchase_info",
        "tags",
    }
)
_IMMUTABLE_FIELDS = frozenset({"id"})

_logger = logging.getLogger(__name__)


class CategoryDeletePolicy(str, Enum):
    """What deleting a category does to ingredients that reference it."""

    REJECT = "reject"
    CASCADE = "cascade"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _new_id() -> str:
    return str(uuid4())


@dataclass
class RegistryService:
    """CRUD and sync façade over one registry's local state."""

    local_store: LocalStateStore
    synchronizer: RegistrySynchronizer
    category_delete_policy: CategoryDeletePolicy = CategoryDeletePolicy.REJECT
    clock: Callable[[], datetime] = field(default=_utcnow)
    id_factory: Callable[[], str] = field(default=_new_id)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @property
    def registry_name(self) -> str:
        """Name of the registry document this service manages."""
        return self.synchronizer.registry_name

    async def initialize(self) -> RegistryStatus:
        """Pull the remote registry if this client has never synced."""
        async with self._lock:
            state = self._load()
            if state.last_sync_time is None:
                _logger.info("No previous sync for %s, pulling", self.registry_name)
                state = await self.synchronizer.pull()
            return _status(state)

    async def save(self) -> RegistryStatus:
        """Push local changes to the remote registry."""
        async with self._lock:
            return _status(await self.synchronizer.push())

    async def refresh(self) -> RegistryStatus:
        """Replace local state with the remote registry, dropping local changes."""
        async with self._lock:
            return _status(await self.synchronizer.pull())

    async def create_category(self, payload: dict[str, object]) -> Category:
        """Create a category, generating an id when none is supplied."""
        _check_fields(payload, _CATEGORY_FIELDS)
        async with self._lock:
            state = self._load()
            category_id = _optional_str(payload.get("id")) or self.id_factory()
            if category_id in state.current.categories:
                raise EntityExistsError("category", category_id)
            category = Category(
                id=category_id,
                name=_required_str(payload, "name"),
                description=_optional_str(payload.get("description")),
                color=_optional_str(payload.get("color")),
                icon=_optional_str(payload.get("icon")),
            )
            state.current.categories[category.id] = category
            self._commit(state)
            return category

    async def update_category(
        self, category_id: str, changes: dict[str, object]
    ) -> Category:
        """Update a category and refresh the copies embedded in ingredients."""
        _check_fields(changes, _CATEGORY_FIELDS - _IMMUTABLE_FIELDS)
        async with self._lock:
            state = self._load()
            existing = state.current.categories.get(category_id)
            if existing is None:
                raise EntityNotFoundError("category", category_id)
            updates = {key: _optional_str(value) for key, value in changes.items()}
            if "name" in changes:
                updates["name"] = _required_str(changes, "name")
            updated = dataclasses.replace(existing, **updates)
            state.current.categories[category_id] = updated
            now = self.clock()
            for ingredient_id, ingredient in state.current.ingredients.items():
                embedded = ingredient.category
                if embedded.id == category_id and embedded != updated:
                    state.current.ingredients[ingredient_id] = dataclasses.replace(
                        ingredient, category=updated, updated_at=now
                    )
            self._commit(state)
            return updated

    async def delete_category(self, category_id: str) -> None:
        """Delete a category; a no-op when it is already absent."""
        async with self._lock:
            state = self._load()
            if category_id not in state.current.categories:
                return
            referencing = [
                ingredient.id
                for ingredient in state.current.ingredients.values()
                if ingredient.category.id == category_id
            ]
            if referencing and self.category_delete_policy is CategoryDeletePolicy.REJECT:
                raise CategoryInUseError(category_id, referencing)
            for ingredient_id in referencing:
                del state.current.ingredients[ingredient_id]
            del state.current.categories[category_id]
            self._commit(state)

    async def create_ingredient(self, payload: dict[str, object]) -> Ingredient:
        """Create an ingredient embedding its resolved category."""
        _check_fields(payload, _INGREDIENT_FIELDS)
        async with self._lock:
            state = self._load()
            ingredient_id = _optional_str(payload.get("id")) or self.id_factory()
            if ingredient_id in state.current.ingredients:
                raise EntityExistsError("ingredient", ingredient_id)
            category = _resolve_category(state, _required_str(payload, "category_id"))
            now = self.clock()
            ingredient = Ingredient(
                id=ingredient_id,
                name=_required_str(payload, "name"),
                category=category,
                default_unit=_required_str(payload, "default_unit"),
                created_at=now,
                updated_at=now,
                alternative_names=_str_list(payload, "alternative_names"),
                description=_optional_str(payload.get("description")),
                storage_info=_optional_mapping(payload, "storage_info"),
                nutrition_info=_optional_mapping(payload, "nutrition_info"),
                purchase_info=_optional_mapping(payload, "purchase_info"),
                tags=_str_list(payload, "tags"),
            )
            state.current.ingredients[ingredient.id] = ingredient
            self._commit(state)
            return ingredient

    async def update_ingredient(
        self, ingredient_id: str, changes: dict[str, object]
    ) -> Ingredient:
        """Update an ingredient, re-resolving its category when it changes."""
        _check_fields(changes, _INGREDIENT_FIELDS - _IMMUTABLE_FIELDS)
        async with self._lock:
            state = self._load()
            existing = state.current.ingredients.get(ingredient_id)
            if existing is None:
                raise EntityNotFoundError("ingredient", ingredient_id)
            category = existing.category
            category_id = changes.get("category_id")
            if category_id is not None and category_id != existing.category.id:
                category = _resolve_category(state, str(category_id))
            updates: dict[str, object] = {}
            for key in ("name", "default_unit"):
                if key in changes:
                    updates[key] = _required_str(changes, key)
            for key in ("alternative_names", "tags"):
                if key in changes:
                    updates[key] = _str_list(changes, key)
            for key in ("storage_info", "nutrition_info", "purchase_info"):
                if key in changes:
                    updates[key] = _optional_mapping(changes, key)
            if "description" in changes:
                updates["description"] = _optional_str(changes["description"])
            updated = dataclasses.replace(
                existing, **updates, category=category, updated_at=self.clock()
            )
            state.current.ingredients[ingredient_id] = updated
            self._commit(state)
            return updated

    async def delete_ingredient(self, ingredient_id: str) -> None:
        """Delete an ingredient; a no-op when it is already absent."""
        async with self._lock:
            state = self._load()
            if state.current.ingredients.pop(ingredient_id, None) is None:
                return
            self._commit(state)

    def list_categories(self) -> list[Category]:
        """Return all categories in local state."""
        return list(self._load().current.categories.values())

    def list_ingredients(self) -> list[Ingredient]:
        """Return all ingredients in local state."""
        return list(self._load().current.ingredients.values())

    def get_category(self, category_id: str) -> Category | None:
        """Return a category by id, if present."""
        return self._load().current.categories.get(category_id)

    def get_ingredient(self, ingredient_id: str) -> Ingredient | None:
        """Return an ingredient by id, if present."""
        return self._load().current.ingredients.get(ingredient_id)

    def pending_changes(self) -> list[PendingChange]:
        """Return changes not yet pushed to the remote registry."""
        return self._load().pending_changes

    def has_pending_changes(self) -> bool:
        """Return True when local state differs from the last sync."""
        return bool(self.pending_changes())

    def pending_changes_count(self) -> int:
        """Return the number of pending changes."""
        return len(self.pending_changes())

    def last_sync_time(self) -> datetime | None:
        """Return when the registry last agreed with the remote, if ever."""
        return self._load().last_sync_time

    def status(self) -> RegistryStatus:
        """Return the registry's sync status."""
        return _status(self._load())

    def _load(self) -> LocalState:
        return self.local_store.load(self.registry_name)

    def _commit(self, state: LocalState) -> None:
        state.last_local_update = self.clock()
        state.pending_changes = recompute(
            state.current, state.baseline, state.last_local_update
        )
        self.local_store.save(self.registry_name, state)


def _status(state: LocalState) -> RegistryStatus:
    return RegistryStatus(
        status=sync_status(state),
        pending_changes=len(state.pending_changes),
        total_categories=len(state.current.categories),
        total_ingredients=len(state.current.ingredients),
        last_local_update=state.last_local_update,
        last_sync_time=state.last_sync_time,
    )


def _resolve_category(state: LocalState, category_id: str) -> Category:
    category = state.current.categories.get(category_id)
    if category is None:
        raise CategoryNotFoundError(category_id)
    return category


def _check_fields(payload: dict[str, object], allowed: frozenset[str]) -> None:
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise InvalidPayloadError(f"Unknown fields: {', '.join(unknown)}")


def _required_str(payload: dict[str, object], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayloadError(f"{key} must be a non-empty string")
    return value.strip()


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)


def _str_list(payload: dict[str, object], key: str) -> list[str]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidPayloadError(f"{key} must be a list")
    return [str(item) for item in value]


def _optional_mapping(payload: dict[str, object], key: str) -> dict[str, object] | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise InvalidPayloadError(f"{key} must be an object")
    return dict(value)
