"""SQLAlchemy ORM models for FieldCRM.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from fieldcrm.models.analytics_event import AnalyticsEvent
from fieldcrm.models.appointment import Appointment
from fieldcrm.models.base import Base
from fieldcrm.models.customer import Customer
from fieldcrm.models.enums import (
    ACTIVE_STATUSES,
    AppointmentPriority,
    AppointmentStatus,
    AppointmentType,
    CommunicationChannel,
    ConflictSeverity,
    StaffRole,
)
from fieldcrm.models.invoice import Invoice
from fieldcrm.models.organization import Organization
from fieldcrm.models.staff import StaffUser

__all__ = [
    # Base
    "Base",
    # Models
    "Organization",
    "StaffUser",
    "Customer",
    "Appointment",
    "Invoice",
    "AnalyticsEvent",
    # Enums
    "ACTIVE_STATUSES",
    "AppointmentStatus",
    "AppointmentType",
    "AppointmentPriority",
    "StaffRole",
    "ConflictSeverity",
    "CommunicationChannel",
]
