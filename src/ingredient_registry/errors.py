"""Exception hierarchy for the ingredient registry."""


class RegistryError(Exception):
    """Base class for registry failures."""


class InvalidPayloadError(RegistryError):
    """Raised when a create or update payload is malformed."""


class EntityNotFoundError(RegistryError):
    """Raised when an update targets an entity missing from local state."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class EntityExistsError(RegistryError):
    """Raised when a create supplies an id that is already in use."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind.capitalize()} already exists: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class CategoryNotFoundError(RegistryError):
    """Raised when an ingredient references a category that does not exist."""

    def __init__(self, category_id: str) -> None:
        super().__init__(f"Category not found: {category_id}")
        self.category_id = category_id


class CategoryInUseError(RegistryError):
    """Raised when deleting a category that ingredients still reference."""

    def __init__(self, category_id: str, ingredient_ids: list[str]) -> None:
        super().__init__(
            f"Category {category_id} is referenced by "
            f"{len(ingredient_ids)} ingredient(s)"
        )
        self.category_id = category_id
        self.ingredient_ids = ingredient_ids


class CorruptRegistryError(RegistryError):
    """Raised when a stored document exists but cannot be parsed."""


class RemoteStoreError(RegistryError):
    """Base class for remote document store failures."""


class RemoteDocumentNotFoundError(RemoteStoreError):
    """Raised when the remote registry document does not exist."""


class RemoteStoreUnavailableError(RemoteStoreError):
    """Raised on network or server failures that may succeed on retry."""


class RemoteAuthError(RemoteStoreError):
    """Raised when the remote store rejects or lacks credentials."""


class StaleWriteError(RemoteStoreError):
    """Raised when the remote document changed since it was last seen."""

    def __init__(self, expected: str | None, actual: str | None) -> None:
        super().__init__(
            f"Remote registry moved from revision {expected} to {actual}; "
            "pull before pushing again"
        )
        self.expected = expected
        self.actual = actual
