"""Appointment model — a scheduled field-service visit for a customer."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldcrm.models.base import Base, TimestampMixin
from fieldcrm.models.enums import AppointmentPriority, AppointmentStatus, AppointmentType

if TYPE_CHECKING:
    from fieldcrm.models.customer import Customer
    from fieldcrm.models.invoice import Invoice
    from fieldcrm.models.staff import StaffUser


class Appointment(TimestampMixin, Base):
    """A customer appointment, optionally assigned to one staff member."""

    __tablename__ = "appointments"
    __table_args__ = (
        # Supports the per-assignee overlap query
        Index("ix_appointments_org_assignee_start", "organization_id", "assigned_user_id", "start_time"),
    )

    # Ownership
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff_users.id"), nullable=False
    )
    assigned_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff_users.id")
    )

    # Description
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    type: Mapped[str] = mapped_column(String(20), default=AppointmentType.OTHER.value, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20), default=AppointmentPriority.NORMAL.value, nullable=False
    )
    tags: Mapped[list[str]] = mapped_column(ARRAY(String(50)), default=list, nullable=False)
    custom_fields: Mapped[dict[str, Any] | None] = mapped_column(JSONB)

    # Scheduling: half-open interval [start_time, end_time)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    estimated_duration: Mapped[int] = mapped_column(Integer, default=60, nullable=False, comment="Minutes")
    status: Mapped[str] = mapped_column(
        String(20), default=AppointmentStatus.SCHEDULED.value, nullable=False, index=True
    )

    # Billing
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    # Reminders
    send_reminder: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reminder_time: Mapped[int] = mapped_column(Integer, default=24, nullable=False, comment="Hours before")

    # Notes & completion
    notes: Mapped[str | None] = mapped_column(Text)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_duration: Mapped[int | None] = mapped_column(Integer, comment="Minutes")
    completion_notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    customer: Mapped[Customer] = relationship("Customer")
    assigned_user: Mapped[StaffUser | None] = relationship("StaffUser", foreign_keys=[assigned_user_id])
    creator: Mapped[StaffUser] = relationship("StaffUser", foreign_keys=[created_by])
    invoice: Mapped[Invoice | None] = relationship("Invoice", back_populates="appointment", uselist=False)

    def __repr__(self) -> str:
        return f"<Appointment id={self.id} status={self.status} at={self.start_time}>"
