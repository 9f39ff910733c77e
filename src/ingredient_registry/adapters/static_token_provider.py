"""Token provider backed by a pre-issued access token."""

from dataclasses import dataclass

from ingredient_registry.errors import RemoteAuthError
from ingredient_registry.services.synchronizer import TokenProvider


@dataclass
class StaticTokenProvider(TokenProvider):
    """Hands out a token obtained elsewhere; refreshing it is not its concern."""

    token: str | None

    async def get_valid_token(self) -> str:
        """Return the configured token."""
        if not self.token:
            raise RemoteAuthError("No access token configured")
        return self.token
