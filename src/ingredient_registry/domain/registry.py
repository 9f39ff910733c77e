"""Domain models for the ingredient registry and its local sync state."""

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

REGISTRY_VERSION = "1.0.0"


class EntityKind(str, Enum):
    """Kinds of entity held in a registry."""

    CATEGORY = "category"
    INGREDIENT = "ingredient"


class ChangeOperation(str, Enum):
    """Operation a pending change would apply to the remote registry."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SyncStatus(str, Enum):
    """Sync state of a registry."""

    UNSYNCED = "unsynced"
    SYNCED = "synced"
    DIRTY = "dirty"


@dataclass(frozen=True)
class Category:
    """Represents an ingredient category."""

    id: str
    name: str
    description: str | None = None
    color: str | None = None
    icon: str | None = None


@dataclass(frozen=True)
class Ingredient:
    """Represents an ingredient with a denormalized copy of its category."""

    id: str
    name: str
    category: Category
    default_unit: str
    created_at: datetime
    updated_at: datetime
    alternative_names: list[str] = field(default_factory=list)
    description: str | None = None
    storage_info: dict[str, object] | None = None
    nutrition_info: dict[str, object] | None = None
    purchase_info: dict[str, object] | None = None
    tags: list[str] = field(default_factory=list)


Entity = Category | Ingredient


@dataclass
class EntityMaps:
    """Entities keyed by id, one insertion-ordered map per kind."""

    categories: dict[str, Category] = field(default_factory=dict)
    ingredients: dict[str, Ingredient] = field(default_factory=dict)

    def copy(self) -> "EntityMaps":
        """Return a deep copy that shares no mutable state with this one."""
        return copy.deepcopy(self)


@dataclass(frozen=True)
class Registry:
    """Remote registry document holding the whole entity graph."""

    entities: EntityMaps
    last_updated: datetime
    version: str = REGISTRY_VERSION

    @property
    def metadata(self) -> dict[str, int]:
        """Entity counts stored alongside the document."""
        return {
            "totalIngredients": len(self.entities.ingredients),
            "totalCategories": len(self.entities.categories),
        }

    @classmethod
    def empty(cls, now: datetime) -> "Registry":
        """Build the default registry written when none exists remotely."""
        return cls(entities=EntityMaps(), last_updated=now)


@dataclass(frozen=True)
class PendingChange:
    """How current local state differs from the baseline for one entity."""

    entity_id: str
    kind: EntityKind
    operation: ChangeOperation
    timestamp: datetime
    snapshot: Entity


@dataclass
class LocalState:
    """Local-only record of current, baseline and derived pending changes."""

    current: EntityMaps = field(default_factory=EntityMaps)
    baseline: EntityMaps = field(default_factory=EntityMaps)
    pending_changes: list[PendingChange] = field(default_factory=list)
    last_local_update: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    last_sync_time: datetime | None = None
    remote_revision: str | None = None


@dataclass(frozen=True)
class RegistryStatus:
    """Summary of a registry's sync state."""

    status: SyncStatus
    pending_changes: int
    total_categories: int
    total_ingredients: int
    last_local_update: datetime
    last_sync_time: datetime | None


def sync_status(state: LocalState) -> SyncStatus:
    """Return the state-machine position of a local state."""
    if state.last_sync_time is None:
        return SyncStatus.UNSYNCED
    if state.pending_changes:
        return SyncStatus.DIRTY
    return SyncStatus.SYNCED
