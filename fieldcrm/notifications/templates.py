"""Message bodies for customer SMS and email notifications."""

from __future__ import annotations

from datetime import datetime

from fieldcrm.models.enums import AppointmentStatus

# Customer-facing text per status; statuses without an entry send nothing
STATUS_MESSAGES: dict[AppointmentStatus, str] = {
    AppointmentStatus.CONFIRMED: "Your appointment has been confirmed",
    AppointmentStatus.IN_PROGRESS: "Your technician is on the way",
    AppointmentStatus.COMPLETED: "Your service has been completed",
    AppointmentStatus.CANCELLED: "Your appointment has been cancelled",
}

_SMS_FOOTER = "Reply STOP to opt out."


def format_when(value: datetime) -> tuple[str, str]:
    """Split a timestamp into display date and time: ("Mon 03 Mar 2025", "09:30")."""
    return value.strftime("%a %d %b %Y"), value.strftime("%H:%M")


def booking_confirmation_sms(
    customer_name: str,
    service_type: str,
    appointment_date: datetime,
    technician: str,
) -> str:
    day, time = format_when(appointment_date)
    return (
        f"Hi {customer_name}! Your {service_type} appointment is confirmed for {day} at {time} "
        f"with {technician}. We'll send a reminder 24hrs before. {_SMS_FOOTER}"
    )


def booking_confirmation_email(
    customer_name: str,
    service_type: str,
    appointment_date: datetime,
    location: str,
    business_name: str,
) -> tuple[str, str]:
    """Return (subject, plain-text body)."""
    day, time = format_when(appointment_date)
    subject = f"Appointment Confirmed - {business_name}"
    body = (
        f"Hi {customer_name},\n\n"
        f"Your appointment has been confirmed:\n\n"
        f"Date & Time: {day} {time}\n"
        f"Service: {service_type}\n"
        f"Location: {location or business_name}\n\n"
        f"We'll send you a reminder 24 hours before your appointment.\n"
        f"See you soon!"
    )
    return subject, body


def status_update_text(customer_name: str, status: AppointmentStatus, service_type: str) -> str | None:
    """Status-change text, or None if the status is not customer-facing."""
    message = STATUS_MESSAGES.get(status)
    if message is None:
        return None
    return f"Hi {customer_name}! {message}: {service_type}."


def sms_segments(message: str) -> int:
    """Number of SMS segments a message is billed as (160 single, 153 per concatenated part)."""
    if len(message) <= 160:
        return 1
    return -(-len(message) // 153)
