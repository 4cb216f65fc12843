"""Organization model — the tenant that owns staff, customers and appointments."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from fieldcrm.models.base import Base, TimestampMixin


class Organization(TimestampMixin, Base):
    """A tenant business."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Organization name={self.name}>"
