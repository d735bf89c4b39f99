"""Exception taxonomy for the production integrity core."""

from __future__ import annotations


class ProductionIntegrityError(Exception):
    """Base class for errors raised by the core."""


class ValidationError(ProductionIntegrityError):
    """Input rejected before any state was written (e.g. blank override reason)."""


class NotFoundError(ProductionIntegrityError):
    """An id passed to an operation does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class InvalidStateError(ProductionIntegrityError):
    """The target exists but is not in a state that allows the operation."""


class PermissionDeniedError(ProductionIntegrityError):
    """The acting user lacks the role level an operation requires."""

    def __init__(self, user_id: str, required_level: int, actual_level: int) -> None:
        super().__init__(
            f"User {user_id} has role level {actual_level}, "
            f"level {required_level} or above is required"
        )
        self.user_id = user_id
        self.required_level = required_level
        self.actual_level = actual_level
