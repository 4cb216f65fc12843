"""Tests for the analytics event bus and recorder.

Covers:
- Global and per-event subscribers receive emitted events
- A failing subscriber does not stop the others
- track_event swallows bus failures
- persist_analytics_event writes one row and swallows DB failures
"""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio

from fieldcrm.analytics import events as bus
from fieldcrm.analytics.recorder import persist_analytics_event, track_event
from fieldcrm.schemas.events import EventName, TrackedEvent


def _make_event(name: EventName = EventName.APPOINTMENT_CREATED, **properties) -> TrackedEvent:
    return TrackedEvent(organization_id=uuid.uuid4(), event=name, properties=properties)


@pytest_asyncio.fixture
async def event_system():
    """Start a fresh bus for one test and tear it down afterwards."""
    await bus.start_event_system()
    yield
    await bus.stop_event_system()
    bus._handlers.clear()


class TestEventBus:
    @pytest.mark.asyncio()
    async def test_global_subscriber_receives_all(self, event_system):
        received: list[TrackedEvent] = []

        async def handler(event: TrackedEvent) -> None:
            received.append(event)

        bus.subscribe(handler)
        await bus.emit(_make_event(EventName.APPOINTMENT_CREATED))
        await bus.emit(_make_event(EventName.APPOINTMENT_CANCELLED))
        await bus._queue.join()

        assert [e.event for e in received] == [EventName.APPOINTMENT_CREATED, EventName.APPOINTMENT_CANCELLED]

    @pytest.mark.asyncio()
    async def test_named_subscriber_filters(self, event_system):
        received: list[TrackedEvent] = []

        async def handler(event: TrackedEvent) -> None:
            received.append(event)

        bus.subscribe(handler, events=[EventName.APPOINTMENT_COMPLETED])
        await bus.emit(_make_event(EventName.APPOINTMENT_CREATED))
        await bus.emit(_make_event(EventName.APPOINTMENT_COMPLETED))
        await bus._queue.join()

        assert [e.event for e in received] == [EventName.APPOINTMENT_COMPLETED]

    @pytest.mark.asyncio()
    async def test_failing_subscriber_isolated(self, event_system):
        received: list[TrackedEvent] = []

        async def broken(event: TrackedEvent) -> None:
            raise RuntimeError("boom")

        async def healthy(event: TrackedEvent) -> None:
            received.append(event)

        bus.subscribe(broken)
        bus.subscribe(healthy)
        await bus.emit(_make_event())
        await bus._queue.join()

        assert len(received) == 1

    @pytest.mark.asyncio()
    async def test_unsubscribe(self, event_system):
        received: list[TrackedEvent] = []

        async def handler(event: TrackedEvent) -> None:
            received.append(event)

        bus.subscribe(handler)
        bus.unsubscribe(handler)
        await bus.emit(_make_event())
        await bus._queue.join()

        assert received == []

    @pytest.mark.asyncio()
    async def test_start_is_idempotent(self, event_system):
        first = await bus.start_event_system()
        second = await bus.start_event_system()

        assert first is second
        assert bus._queue is first

    @pytest.mark.asyncio()
    async def test_emit_starts_worker_lazily(self):
        received: list[TrackedEvent] = []

        async def handler(event: TrackedEvent) -> None:
            received.append(event)

        bus.subscribe(handler)
        try:
            await bus.emit(_make_event())
            await bus._queue.join()
        finally:
            await bus.stop_event_system()
            bus._handlers.clear()

        assert len(received) == 1


class TestTrackEvent:
    @pytest.mark.asyncio()
    async def test_emits_tracked_event(self):
        org_id = uuid.uuid4()

        with patch("fieldcrm.analytics.recorder.emit", new_callable=AsyncMock) as mock_emit:
            await track_event(org_id, EventName.APPOINTMENT_CREATED, {"duration": 60}, source_module="test")

        event = mock_emit.await_args.args[0]
        assert event.organization_id == org_id
        assert event.event == EventName.APPOINTMENT_CREATED
        assert event.properties == {"duration": 60}
        assert event.source_module == "test"

    @pytest.mark.asyncio()
    async def test_bus_failure_swallowed(self):
        with patch("fieldcrm.analytics.recorder.emit", new_callable=AsyncMock) as mock_emit:
            mock_emit.side_effect = RuntimeError("queue gone")
            await track_event(uuid.uuid4(), EventName.APPOINTMENT_CANCELLED)

        mock_emit.assert_awaited_once()


def _make_session_scope(session: MagicMock) -> MagicMock:
    scope = MagicMock()
    scope.return_value.__aenter__ = AsyncMock(return_value=session)
    scope.return_value.__aexit__ = AsyncMock(return_value=False)
    return scope


class TestPersistAnalyticsEvent:
    @pytest.mark.asyncio()
    async def test_writes_row(self):
        session = MagicMock()
        appointment_id = uuid.uuid4()
        event = _make_event(EventName.APPOINTMENT_COMPLETED, appointment_id=str(appointment_id), revenue=99.5)

        with patch("fieldcrm.analytics.recorder.session_scope", _make_session_scope(session)):
            await persist_analytics_event(event)

        row = session.add.call_args.args[0]
        assert row.organization_id == event.organization_id
        assert row.event == "appointment_completed"
        assert row.properties == {"appointment_id": str(appointment_id), "revenue": 99.5}
        session.add.assert_called_once()

    @pytest.mark.asyncio()
    async def test_db_failure_swallowed(self):
        session = MagicMock()
        session.add.side_effect = RuntimeError("db down")

        with patch("fieldcrm.analytics.recorder.session_scope", _make_session_scope(session)):
            await persist_analytics_event(_make_event())

        session.add.assert_called_once()
