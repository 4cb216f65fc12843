"""Invoice model — only the link to an appointment matters for scheduling."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldcrm.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from fieldcrm.models.appointment import Appointment


class Invoice(TimestampMixin, Base):
    """An invoice, optionally raised for a single appointment."""

    __tablename__ = "invoices"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True
    )
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("appointments.id"), unique=True
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="DRAFT", nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    appointment: Mapped[Appointment | None] = relationship("Appointment", back_populates="invoice")

    def __repr__(self) -> str:
        return f"<Invoice number={self.invoice_number} status={self.status}>"
