"""Async httpx dispatcher for customer SMS (Twilio) and email (SendGrid).

Delivery is best-effort: every channel fails independently and a failure is
logged and reported as ``False`` in the NotificationResult, never raised.
"""

from __future__ import annotations

import logging

import httpx

from fieldcrm.config import settings
from fieldcrm.models.enums import CommunicationChannel
from fieldcrm.notifications.schemas import (
    BookingConfirmation,
    NotificationResult,
    StatusUpdateNotification,
)
from fieldcrm.notifications.templates import (
    booking_confirmation_email,
    booking_confirmation_sms,
    sms_segments,
    status_update_text,
)

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Thin async wrapper around the Twilio Messages and SendGrid Mail Send endpoints.

    SMS:   POST {twilio_api_url}/Accounts/{sid}/Messages.json (form, HTTP Basic)
    Email: POST {sendgrid_api_url} (JSON, Bearer token)
    """

    def __init__(self) -> None:
        cfg = settings.notifications
        self._twilio_url = cfg.twilio_api_url.rstrip("/")
        self._twilio_sid = cfg.twilio_account_sid
        self._twilio_token = cfg.twilio_auth_token
        self._twilio_from = cfg.twilio_from_number
        self._sendgrid_url = cfg.sendgrid_api_url
        self._sendgrid_key = cfg.sendgrid_api_key
        self._sendgrid_from = cfg.sendgrid_from_email
        self._business_name = cfg.business_name
        self._timeout = httpx.Timeout(cfg.http_timeout, connect=5.0)

    @property
    def _sms_bypass(self) -> bool:
        """Return True if Twilio is not configured (dev/test bypass)."""
        return not (self._twilio_sid and self._twilio_token and self._twilio_from)

    @property
    def _email_bypass(self) -> bool:
        """Return True if SendGrid is not configured (dev/test bypass)."""
        return not self._sendgrid_key

    async def send_booking_confirmation(self, details: BookingConfirmation) -> NotificationResult:
        """Confirm a new booking by SMS and email, whichever contact details exist."""
        result = NotificationResult()

        if details.customer_phone:
            body = booking_confirmation_sms(
                details.customer_name,
                details.service_type,
                details.appointment_date,
                details.technician,
            )
            result.sms = await self._send_sms(details.customer_phone, body)

        if details.customer_email:
            subject, body = booking_confirmation_email(
                details.customer_name,
                details.service_type,
                details.appointment_date,
                details.location,
                self._business_name,
            )
            result.email = await self._send_email(details.customer_email, subject, body)

        logger.info(
            "Booking confirmation: appointment=%s sms=%s email=%s",
            details.appointment_id,
            result.sms,
            result.email,
        )
        return result

    async def send_status_update(self, details: StatusUpdateNotification) -> NotificationResult:
        """Send a status-change message over the customer's preferred channel only."""
        result = NotificationResult()
        text = status_update_text(details.customer_name, details.status, details.service_type)
        if text is None:
            return result

        if details.channel == CommunicationChannel.SMS and details.customer_phone:
            result.sms = await self._send_sms(details.customer_phone, text)
        elif details.channel == CommunicationChannel.EMAIL and details.customer_email:
            subject = f"Appointment update - {self._business_name}"
            result.email = await self._send_email(details.customer_email, subject, text)
        else:
            logger.debug(
                "No %s contact for status update: appointment=%s",
                details.channel.value,
                details.appointment_id,
            )

        return result

    # ── Transports ───────────────────────────────────────────────────

    async def _send_sms(self, to: str, body: str) -> bool:
        if self._sms_bypass:
            logger.debug("SMS bypass mode active (Twilio not configured)")
            return False

        url = f"{self._twilio_url}/Accounts/{self._twilio_sid}/Messages.json"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    url,
                    data={"To": to, "From": self._twilio_from, "Body": body},
                    auth=(self._twilio_sid, self._twilio_token),
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("Twilio timeout sending SMS to %s", to[-4:])
            return False
        except httpx.HTTPStatusError as exc:
            logger.warning("Twilio HTTP error %s sending SMS to %s", exc.response.status_code, to[-4:])
            return False
        except httpx.HTTPError as exc:
            logger.warning("Twilio request failed: %s", exc)
            return False

        logger.debug("SMS sent to %s (%d segments)", to[-4:], sms_segments(body))
        return True

    async def _send_email(self, to: str, subject: str, body: str) -> bool:
        if self._email_bypass:
            logger.debug("Email bypass mode active (SendGrid not configured)")
            return False

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self._sendgrid_from, "name": self._business_name},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._sendgrid_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._sendgrid_key}"},
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("SendGrid timeout sending email")
            return False
        except httpx.HTTPStatusError as exc:
            logger.warning("SendGrid HTTP error %s sending email", exc.response.status_code)
            return False
        except httpx.HTTPError as exc:
            logger.warning("SendGrid request failed: %s", exc)
            return False

        logger.debug("Email sent: %s", subject)
        return True


# Module-level singleton
notification_dispatcher = NotificationDispatcher()
