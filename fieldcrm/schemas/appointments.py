"""Pydantic schemas for appointment requests and responses."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fieldcrm.models.enums import AppointmentPriority, AppointmentStatus, AppointmentType


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps as UTC so interval comparisons are well defined."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Requests ─────────────────────────────────────────────────────────


class AppointmentCreate(BaseModel):
    """Body of POST /api/appointments."""

    customer_id: uuid.UUID
    title: str = Field(min_length=2, max_length=200)
    description: str | None = None
    start_time: datetime
    end_time: datetime
    type: AppointmentType = AppointmentType.OTHER
    location: str | None = None
    assigned_user_id: uuid.UUID | None = None
    estimated_duration: int = Field(default=60, ge=15, le=480, description="Minutes (15 min to 8 h)")
    price: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
    priority: AppointmentPriority = AppointmentPriority.NORMAL
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] | None = None
    send_reminder: bool = True
    reminder_time: int = Field(default=24, ge=0, description="Hours before the appointment")

    normalize_timezone = field_validator("start_time", "end_time")(as_utc)


# Fields the update may not null out (the columns are NOT NULL)
_NON_NULLABLE_UPDATE_FIELDS = frozenset({
    "title",
    "start_time",
    "end_time",
    "type",
    "status",
    "location",
    "estimated_duration",
    "priority",
    "tags",
    "send_reminder",
    "reminder_time",
})


class AppointmentUpdate(BaseModel):
    """Body of PUT /api/appointments/{id} — every field optional.

    Only fields present in the request are applied; an explicit ``null`` for
    ``assigned_user_id`` unassigns the appointment.
    """

    title: str | None = Field(default=None, min_length=2, max_length=200)
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    type: AppointmentType | None = None
    status: AppointmentStatus | None = None
    location: str | None = None
    assigned_user_id: uuid.UUID | None = None
    estimated_duration: int | None = Field(default=None, ge=15, le=480)
    price: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
    priority: AppointmentPriority | None = None
    tags: list[str] | None = None
    custom_fields: dict[str, Any] | None = None
    send_reminder: bool | None = None
    reminder_time: int | None = Field(default=None, ge=0)
    completion_notes: str | None = None
    actual_duration: int | None = Field(default=None, ge=0)

    normalize_timezone = field_validator("start_time", "end_time")(as_utc)

    @model_validator(mode="after")
    def reject_null_required(self) -> AppointmentUpdate:
        for name in self.model_fields_set & _NON_NULLABLE_UPDATE_FIELDS:
            if getattr(self, name) is None:
                msg = f"{name} cannot be null"
                raise ValueError(msg)
        return self

    def changes(self) -> dict[str, Any]:
        """Return only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)


class AppointmentFilters(BaseModel):
    """Query parameters of GET /api/appointments."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    status: AppointmentStatus | None = None
    type: AppointmentType | None = None
    assigned_user_id: uuid.UUID | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    search: str | None = None

    normalize_timezone = field_validator("start_date", "end_date")(as_utc)


# ── Responses ────────────────────────────────────────────────────────


class CustomerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None


class StaffSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str


class InvoiceSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    invoice_number: str
    status: str
    total: float


class AppointmentRead(BaseModel):
    """Appointment with the related projections attached."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    customer_id: uuid.UUID
    created_by: uuid.UUID
    assigned_user_id: uuid.UUID | None = None
    title: str
    description: str | None = None
    location: str
    type: AppointmentType
    priority: AppointmentPriority
    status: AppointmentStatus
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] | None = None
    start_time: datetime
    end_time: datetime
    estimated_duration: int
    price: float | None = None
    send_reminder: bool
    reminder_time: int
    notes: str | None = None
    completed_at: datetime | None = None
    actual_duration: int | None = None
    completion_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    customer: CustomerSummary | None = None
    assigned_user: StaffSummary | None = None
    invoice: InvoiceSummary | None = None


class AppointmentEnvelope(BaseModel):
    success: bool = True
    message: str
    appointment: AppointmentRead


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AppointmentList(BaseModel):
    appointments: list[AppointmentRead]
    pagination: Pagination
    stats: dict[str, int] = Field(default_factory=dict, description="Per-status counts for the organization")
