"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization; columns store the value string.
"""

from __future__ import annotations

from enum import Enum


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""

    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that hold a slot on the assignee's calendar
ACTIVE_STATUSES: frozenset[AppointmentStatus] = frozenset({
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
})


class AppointmentType(str, Enum):
    """Kind of field-service visit."""

    MAINTENANCE = "MAINTENANCE"
    REPAIR = "REPAIR"
    INSTALLATION = "INSTALLATION"
    INSPECTION = "INSPECTION"
    CONSULTATION = "CONSULTATION"
    EMERGENCY = "EMERGENCY"
    OTHER = "OTHER"


class AppointmentPriority(str, Enum):
    """Dispatch priority."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class StaffRole(str, Enum):
    """Staff roles — ADMIN and MANAGER may cancel appointments."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"
    TECHNICIAN = "TECHNICIAN"


class ConflictSeverity(str, Enum):
    """Severity of a scheduling conflict reported by the conflict check."""

    HIGH = "high"  # direct overlap
    MEDIUM = "medium"  # not enough travel time
    LOW = "low"


class CommunicationChannel(str, Enum):
    """Customer's preferred channel for status updates."""

    SMS = "sms"
    EMAIL = "email"
