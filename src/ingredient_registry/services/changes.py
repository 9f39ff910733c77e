"""Pending change calculation as a diff between current and baseline."""

from collections.abc import Mapping
from datetime import datetime

from ingredient_registry.domain.registry import (
    ChangeOperation,
    Entity,
    EntityKind,
    EntityMaps,
    PendingChange,
)


def recompute(
    current: EntityMaps, baseline: EntityMaps, at: datetime
) -> list[PendingChange]:
    """Return the pending changes that turn ``baseline`` into ``current``.

    Categories come first, then ingredients. Within a kind, creates and
    updates follow the insertion order of ``current`` and deletes follow
    the order of ``baseline``. Every change is stamped with ``at``, so the
    result depends only on the arguments.
    """
    return [
        *diff_kind(EntityKind.CATEGORY, current.categories, baseline.categories, at),
        *diff_kind(
            EntityKind.INGREDIENT, current.ingredients, baseline.ingredients, at
        ),
    ]


def diff_kind(
    kind: EntityKind,
    current: Mapping[str, Entity],
    baseline: Mapping[str, Entity],
    at: datetime,
) -> list[PendingChange]:
    """Diff a single entity map against its baseline."""
    changes: list[PendingChange] = []
    for entity_id, value in current.items():
        if entity_id not in baseline:
            operation = ChangeOperation.CREATE
        elif value != baseline[entity_id]:
            operation = ChangeOperation.UPDATE
        else:
            continue
        changes.append(
            PendingChange(
                entity_id=entity_id,
                kind=kind,
                operation=operation,
                timestamp=at,
                snapshot=value,
            )
        )
    changes.extend(
        PendingChange(
            entity_id=entity_id,
            kind=kind,
            operation=ChangeOperation.DELETE,
            timestamp=at,
            snapshot=value,
        )
        for entity_id, value in baseline.items()
        if entity_id not in current
    )
    return changes
