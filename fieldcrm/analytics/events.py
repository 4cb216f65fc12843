"""In-process analytics event bus.

``emit`` only enqueues; a single background worker fans each TrackedEvent out
to its subscribers. Subscribers therefore never add latency to the request
that emitted the event, and a subscriber that raises is logged and skipped.

    from fieldcrm.analytics.events import emit, subscribe

    subscribe(persist_analytics_event)                        # every event
    subscribe(on_completed, [EventName.APPOINTMENT_COMPLETED])  # one event

    await emit(TrackedEvent(organization_id=org_id, event=EventName.APPOINTMENT_CREATED))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from fieldcrm.schemas.events import EventName, TrackedEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[TrackedEvent], Coroutine[Any, Any, None]]

# None keys the handlers that receive every event
_handlers: dict[EventName | None, list[EventHandler]] = {}
_queue: asyncio.Queue[TrackedEvent] | None = None
_worker: asyncio.Task[None] | None = None


# ── Subscriptions ────────────────────────────────────────────────────


def subscribe(handler: EventHandler, events: list[EventName] | None = None) -> None:
    """Register ``handler`` for ``events``, or for every event when omitted."""
    for key in events or [None]:
        _handlers.setdefault(key, []).append(handler)
    logger.info(
        "Subscribed %s to %s",
        handler.__name__,
        "all events" if events is None else [e.value for e in events],
    )


def unsubscribe(handler: EventHandler) -> None:
    for handlers in _handlers.values():
        while handler in handlers:
            handlers.remove(handler)


def _handlers_for(event: TrackedEvent) -> list[EventHandler]:
    return [*_handlers.get(None, []), *_handlers.get(event.event, [])]


# ── Publishing ───────────────────────────────────────────────────────


async def emit(event: TrackedEvent) -> None:
    """Queue ``event`` for delivery; starts the worker on first use."""
    queue = await start_event_system()
    await queue.put(event)
    logger.debug("Queued %s (org=%s)", event.event.value, event.organization_id)


async def _run_worker(queue: asyncio.Queue[TrackedEvent]) -> None:
    while True:
        event = await queue.get()
        try:
            await asyncio.gather(*(_deliver(h, event) for h in _handlers_for(event)))
        finally:
            queue.task_done()


async def _deliver(handler: EventHandler, event: TrackedEvent) -> None:
    try:
        await handler(event)
    except Exception:
        logger.exception("Subscriber %s failed on %s", handler.__name__, event.event.value)


# ── Lifecycle ────────────────────────────────────────────────────────


async def start_event_system() -> asyncio.Queue[TrackedEvent]:
    """Create the queue and start the worker, returning the live queue. Idempotent."""
    global _queue, _worker
    if _queue is not None and _worker is not None and not _worker.done():
        return _queue
    queue: asyncio.Queue[TrackedEvent] = asyncio.Queue()
    _queue = queue
    _worker = asyncio.create_task(_run_worker(queue), name="analytics-event-worker")
    logger.info("Event worker started (%d subscriptions)", sum(len(h) for h in _handlers.values()))
    return queue


async def stop_event_system() -> None:
    """Deliver everything already queued, then stop the worker."""
    global _queue, _worker
    if _worker is not None and not _worker.done():
        if _queue is not None:
            await _queue.join()
        _worker.cancel()
        try:
            await _worker
        except asyncio.CancelledError:
            pass
    _queue = None
    _worker = None
    logger.info("Event worker stopped")
