"""Tests for customer notifications.

Covers:
- Message templates (confirmation SMS/email, status text, SMS segments)
- Bypass mode: missing provider credentials skip HTTP entirely
- Booking confirmation over both channels
- Status update over the preferred channel only
- Provider timeout / HTTP errors reported as False, never raised
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from fieldcrm.models.enums import AppointmentStatus, CommunicationChannel
from fieldcrm.notifications.dispatcher import NotificationDispatcher
from fieldcrm.notifications.schemas import BookingConfirmation, StatusUpdateNotification
from fieldcrm.notifications.templates import (
    booking_confirmation_email,
    booking_confirmation_sms,
    sms_segments,
    status_update_text,
)

WHEN = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)

# ── Helpers ──────────────────────────────────────────────────────────


def _make_response(status_code: int = 200) -> MagicMock:
    """Build a mock httpx.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.raise_for_status = MagicMock()  # no-op for 2xx
    return resp


def _make_dispatcher() -> NotificationDispatcher:
    dispatcher = NotificationDispatcher()
    dispatcher._twilio_sid = "AC-test"
    dispatcher._twilio_token = "token"
    dispatcher._twilio_from = "+15550000"
    dispatcher._sendgrid_key = "SG.test"
    return dispatcher


def _booking(**overrides) -> BookingConfirmation:
    fields = {
        "appointment_id": uuid.uuid4(),
        "customer_id": uuid.uuid4(),
        "customer_name": "Jane",
        "customer_email": "jane@example.com",
        "customer_phone": "+15550100",
        "appointment_date": WHEN,
        "service_type": "Boiler service",
        "technician": "Tom",
        "location": "12 Elm Street",
    }
    fields.update(overrides)
    return BookingConfirmation(**fields)


def _status_update(channel: CommunicationChannel, status=AppointmentStatus.CONFIRMED) -> StatusUpdateNotification:
    return StatusUpdateNotification(
        appointment_id=uuid.uuid4(),
        customer_name="Jane",
        customer_email="jane@example.com",
        customer_phone="+15550100",
        channel=channel,
        status=status,
        service_type="Boiler service",
        appointment_date=WHEN,
    )


def _patch_http(mock_client_cls, response=None, side_effect=None) -> AsyncMock:
    mock_http = AsyncMock()
    mock_http.post = AsyncMock(return_value=response, side_effect=side_effect)
    mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=mock_http)
    mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    return mock_http


# ── Templates ────────────────────────────────────────────────────────


class TestTemplates:
    def test_confirmation_sms(self):
        text = booking_confirmation_sms("Jane", "Boiler service", WHEN, "Tom")
        assert text.startswith("Hi Jane! Your Boiler service appointment is confirmed for Mon 02 Mar 2026 at 09:30")
        assert "with Tom" in text
        assert text.endswith("Reply STOP to opt out.")

    def test_confirmation_email(self):
        subject, body = booking_confirmation_email("Jane", "Boiler service", WHEN, "", "Acme Heating")
        assert subject == "Appointment Confirmed - Acme Heating"
        assert "Location: Acme Heating" in body  # falls back to business name
        assert "Service: Boiler service" in body

    def test_status_text(self):
        text = status_update_text("Jane", AppointmentStatus.IN_PROGRESS, "Boiler service")
        assert text == "Hi Jane! Your technician is on the way: Boiler service."

    def test_status_text_not_customer_facing(self):
        assert status_update_text("Jane", AppointmentStatus.NO_SHOW, "Boiler service") is None

    def test_sms_segments(self):
        assert sms_segments("x" * 160) == 1
        assert sms_segments("x" * 161) == 2
        assert sms_segments("x" * 307) == 3


# ── Dispatcher ───────────────────────────────────────────────────────


class TestBypassMode:
    @pytest.mark.asyncio()
    async def test_unconfigured_skips_http(self):
        dispatcher = NotificationDispatcher()
        dispatcher._twilio_sid = ""
        dispatcher._sendgrid_key = ""

        with patch("httpx.AsyncClient") as mock_client_cls:
            result = await dispatcher.send_booking_confirmation(_booking())

        mock_client_cls.assert_not_called()
        assert result.sms is False
        assert result.email is False


class TestBookingConfirmation:
    @pytest.mark.asyncio()
    async def test_both_channels(self):
        dispatcher = _make_dispatcher()

        with patch("httpx.AsyncClient") as mock_client_cls:
            mock_http = _patch_http(mock_client_cls, response=_make_response())
            result = await dispatcher.send_booking_confirmation(_booking())

        assert result.sms is True
        assert result.email is True
        assert mock_http.post.await_count == 2

        sms_call, email_call = mock_http.post.await_args_list
        assert sms_call.args[0].endswith("/Accounts/AC-test/Messages.json")
        assert sms_call.kwargs["data"]["To"] == "+15550100"
        assert sms_call.kwargs["auth"] == ("AC-test", "token")
        assert email_call.kwargs["json"]["personalizations"][0]["to"][0]["email"] == "jane@example.com"
        assert email_call.kwargs["headers"]["Authorization"] == "Bearer SG.test"

    @pytest.mark.asyncio()
    async def test_email_only_without_phone(self):
        dispatcher = _make_dispatcher()

        with patch("httpx.AsyncClient") as mock_client_cls:
            mock_http = _patch_http(mock_client_cls, response=_make_response())
            result = await dispatcher.send_booking_confirmation(_booking(customer_phone=None))

        assert result.sms is False
        assert result.email is True
        assert mock_http.post.await_count == 1

    @pytest.mark.asyncio()
    async def test_timeout_reported_not_raised(self):
        dispatcher = _make_dispatcher()

        with patch("httpx.AsyncClient") as mock_client_cls:
            _patch_http(mock_client_cls, side_effect=httpx.TimeoutException("timed out"))
            result = await dispatcher.send_booking_confirmation(_booking())

        assert result.sms is False
        assert result.email is False

    @pytest.mark.asyncio()
    async def test_http_error_reported_not_raised(self):
        dispatcher = _make_dispatcher()
        resp = _make_response(status_code=401)
        resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            "unauthorized", request=MagicMock(), response=resp
        )

        with patch("httpx.AsyncClient") as mock_client_cls:
            _patch_http(mock_client_cls, response=resp)
            result = await dispatcher.send_booking_confirmation(_booking(customer_email=None))

        assert result.sms is False


class TestStatusUpdate:
    @pytest.mark.asyncio()
    async def test_sms_preference(self):
        dispatcher = _make_dispatcher()

        with patch("httpx.AsyncClient") as mock_client_cls:
            mock_http = _patch_http(mock_client_cls, response=_make_response())
            result = await dispatcher.send_status_update(_status_update(CommunicationChannel.SMS))

        assert result.sms is True
        assert result.email is False
        mock_http.post.assert_awaited_once()
        assert "Your appointment has been confirmed" in mock_http.post.await_args.kwargs["data"]["Body"]

    @pytest.mark.asyncio()
    async def test_email_preference(self):
        dispatcher = _make_dispatcher()

        with patch("httpx.AsyncClient") as mock_client_cls:
            _patch_http(mock_client_cls, response=_make_response())
            result = await dispatcher.send_status_update(_status_update(CommunicationChannel.EMAIL))

        assert result.sms is False
        assert result.email is True

    @pytest.mark.asyncio()
    async def test_non_customer_facing_status(self):
        dispatcher = _make_dispatcher()

        with patch("httpx.AsyncClient") as mock_client_cls:
            result = await dispatcher.send_status_update(
                _status_update(CommunicationChannel.SMS, status=AppointmentStatus.SCHEDULED)
            )

        mock_client_cls.assert_not_called()
        assert result.sms is False
