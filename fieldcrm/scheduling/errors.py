"""Domain errors raised by the appointment lifecycle manager.

Transport-agnostic: the API layer maps each class to an HTTP status.
"""

from __future__ import annotations

from fieldcrm.schemas.conflicts import ConflictDetail


class SchedulingError(Exception):
    """Base class for validation and business-rule failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(SchedulingError):
    """A referenced customer or appointment does not exist in the caller's organization."""

    def __init__(self, entity: str, message: str | None = None) -> None:
        super().__init__(message or f"{entity.capitalize()} not found")
        self.entity = entity


class InvalidAssignment(SchedulingError):
    """The assignee is not a staff member of the caller's organization."""


class InvalidTimeRange(SchedulingError):
    """start_time is not strictly before end_time."""


class SchedulingConflict(SchedulingError):
    """The assignee already holds an active appointment overlapping the interval."""

    def __init__(self, conflict: ConflictDetail) -> None:
        super().__init__("Scheduling conflict detected")
        self.conflict = conflict


class Forbidden(SchedulingError):
    """The caller's role does not allow the operation."""


class Conflict(SchedulingError):
    """A business rule blocks the operation."""
