"""Typed failures raised by the repository and surfaced by the API."""


class CatalogError(Exception):
    """Base class for catalog failures."""


class NotFound(CatalogError):
    """An update, delete or detail fetch targeted an id that does not exist."""

    def __init__(self, entity: str, entity_id: int):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with id {entity_id} not found")


class ReferenceNotFound(NotFound):
    """A screenshot write named a reference_id that does not resolve."""

    def __init__(self, reference_id: int):
        super().__init__("Reference", reference_id)


class StorageUnavailable(CatalogError):
    """The underlying store failed; the original error is chained as __cause__."""
