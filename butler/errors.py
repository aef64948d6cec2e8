"""Exception types shared across the butler services."""

from __future__ import annotations


class ButlerError(RuntimeError):
    """Base class for domain errors raised by butler services."""


class NotFoundError(ButlerError):
    """Raised when an entity could not be located."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ApprovalStateError(ButlerError):
    """Raised when an approval item is decided outside the ``pending`` state."""


class ValidationError(ButlerError):
    """Raised when a payload is well-formed but semantically invalid."""
