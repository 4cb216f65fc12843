"""Analytics recorder — fire-and-forget business event tracking.

``track_event`` hands the event to the async event bus and returns; the
``persist_analytics_event`` subscriber writes it to the analytics_events
table in its own session. Neither ever raises into the caller.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fieldcrm.analytics.events import emit
from fieldcrm.db.engine import session_scope
from fieldcrm.models.analytics_event import AnalyticsEvent
from fieldcrm.schemas.events import EventName, TrackedEvent

logger = logging.getLogger(__name__)


async def track_event(
    organization_id: uuid.UUID,
    event: EventName,
    properties: dict[str, Any] | None = None,
    source_module: str | None = None,
) -> None:
    """Record an analytics event for an organization.

    Failures are logged and swallowed — analytics must never fail the
    operation that triggered it.
    """
    try:
        await emit(TrackedEvent(
            organization_id=organization_id,
            event=event,
            properties=properties or {},
            source_module=source_module,
        ))
    except Exception:
        logger.exception("Failed to track analytics event: %s (org=%s)", event.value, organization_id)


async def persist_analytics_event(event: TrackedEvent) -> None:
    """Write a TrackedEvent to the analytics_events table.

    Registered as a global subscriber at startup.
    """
    payload = event.model_dump(mode="json")
    try:
        async with session_scope() as db:
            db.add(AnalyticsEvent(
                organization_id=event.organization_id,
                event=event.event.value,
                properties=payload["properties"],
                timestamp=event.timestamp,
            ))
    except Exception:
        logger.exception(
            "Failed to persist analytics event: %s (org=%s)",
            event.event.value,
            event.organization_id,
        )
