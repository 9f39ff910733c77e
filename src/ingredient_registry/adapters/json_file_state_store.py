"""JSON file implementation of the local state store."""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ingredient_registry.domain.registry import LocalState
from ingredient_registry.domain.serialization import (
    decode_local_state,
    encode_local_state,
)
from ingredient_registry.services.local_state import LocalStateStore


@dataclass
class JsonFileLocalStateStore(LocalStateStore):
    """Stores each registry's local state as ``<state_dir>/<name>.state.json``.

    Writes go to a temporary file in the same directory which then
    replaces the target, so readers never observe a half-written record.
    """

    state_dir: Path

    def load(self, registry_name: str) -> LocalState:
        """Load the local state, or return an empty one if nothing is stored."""
        path = self._state_path(registry_name)
        if not path.exists():
            return LocalState()
        return decode_local_state(path.read_text(encoding="utf-8"))

    def save(self, registry_name: str, state: LocalState) -> None:
        """Persist the full local state atomically."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.state_dir), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(encode_local_state(state))
            os.replace(tmp_path, self._state_path(registry_name))
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def _state_path(self, registry_name: str) -> Path:
        stem = registry_name.removesuffix(".json")
        return self.state_dir / f"{stem}.state.json"
