"""Service-level exception hierarchy.

Services raise these; the application registers one handler per type in
``posture.middleware.configure_exception_handlers`` so every endpoint maps
them to the same status code and ``{"error", "message"}`` body.
"""

from __future__ import annotations

from posture.models.enums import EntityType


class NotFoundError(Exception):
    """Raised when an id does not resolve to a record. Maps to HTTP 404.

    Args:
        entity_type: Hierarchy level, or a plain resource name such as "Assessment".
        entity_id: The id that was looked up.
    """

    def __init__(self, entity_type: EntityType | str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        label = entity_type.label if isinstance(entity_type, EntityType) else entity_type
        super().__init__(f"{label} id={entity_id} not found")


class ValidationError(Exception):
    """Raised when a request is well-formed JSON but unusable. Maps to HTTP 400."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when a write would violate a uniqueness rule. Maps to HTTP 409."""

    def __init__(self, resource: str, field: str, value: str) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")
