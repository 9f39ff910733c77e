"""Persistence interface for the local registry state."""

from typing import Protocol

from ingredient_registry.domain.registry import LocalState


class LocalStateStore(Protocol):
    """Durable get/put storage of one local state record per registry."""

    def load(self, registry_name: str) -> LocalState:
        """Return the stored state, or an empty state if none was saved."""

    def save(self, registry_name: str, state: LocalState) -> None:
        """Replace the stored state with ``state`` in full."""
