"""AnalyticsEvent model — append-only business event stream per organization."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from fieldcrm.models.base import Base, TimestampMixin


class AnalyticsEvent(TimestampMixin, Base):
    """One tracked business event (appointment_created, appointment_completed, ...)."""

    __tablename__ = "analytics_events"

    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    event: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    properties: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AnalyticsEvent event={self.event} org={self.organization_id}>"
