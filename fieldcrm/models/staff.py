"""StaffUser model — people who book, run and manage appointments."""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from fieldcrm.models.base import Base, TimestampMixin
from fieldcrm.models.enums import StaffRole


class StaffUser(TimestampMixin, Base):
    """A staff member of one organization."""

    __tablename__ = "staff_users"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True
    )

    # Profile
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(20))

    role: Mapped[str] = mapped_column(String(20), default=StaffRole.STAFF.value, nullable=False)

    def __repr__(self) -> str:
        return f"<StaffUser email={self.email} role={self.role}>"
