"""Pydantic schemas for customer notifications."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from fieldcrm.models.enums import AppointmentStatus, CommunicationChannel


class BookingConfirmation(BaseModel):
    """Everything a booking confirmation message needs."""

    appointment_id: uuid.UUID
    customer_id: uuid.UUID
    customer_name: str
    customer_email: str | None = None
    customer_phone: str | None = None
    appointment_date: datetime
    service_type: str
    technician: str = "TBD"
    location: str = ""
    estimated_duration: int = 60
    notes: str = ""


class StatusUpdateNotification(BaseModel):
    """A customer-facing status change, sent over one preferred channel."""

    appointment_id: uuid.UUID
    customer_name: str
    customer_email: str | None = None
    customer_phone: str | None = None
    channel: CommunicationChannel
    status: AppointmentStatus
    service_type: str
    appointment_date: datetime


class NotificationResult(BaseModel):
    """Per-channel delivery outcome."""

    sms: bool = False
    email: bool = False
