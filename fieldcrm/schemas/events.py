"""TrackedEvent schema — the analytics message that flows through the event bus.

Every business action (appointment created, status changed, ...) is wrapped in
a TrackedEvent and consumed asynchronously by subscribers such as the
analytics persister.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventName(str, Enum):
    """Analytics event names emitted by the scheduling service."""

    APPOINTMENT_CREATED = "appointment_created"
    APPOINTMENT_STATUS_CHANGED = "appointment_status_changed"
    APPOINTMENT_COMPLETED = "appointment_completed"
    APPOINTMENT_CANCELLED = "appointment_cancelled"


class TrackedEvent(BaseModel):
    """Immutable analytics event scoped to one organization."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    organization_id: uuid.UUID
    event: EventName
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Flexible payload
    properties: dict[str, Any] = Field(default_factory=dict)

    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
