"""Appointment lifecycle: create, update, cancel, read and list appointments.

Enforces the scheduling invariant: within an organization, one assignee never
holds two active (SCHEDULED, CONFIRMED, IN_PROGRESS) appointments whose
``[start_time, end_time)`` intervals overlap. Unassigned appointments are
never checked.

Analytics and customer notifications are side channels: their failures are
logged and swallowed, and never undo or fail the primary write.
"""

from __future__ import annotations

import functools
import logging
import math
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from fieldcrm.analytics.recorder import track_event
from fieldcrm.config import settings
from fieldcrm.db.engine import AfterCommitCallback, run_after_commit
from fieldcrm.models.appointment import Appointment
from fieldcrm.models.enums import AppointmentStatus, CommunicationChannel
from fieldcrm.models.staff import StaffUser
from fieldcrm.notifications.dispatcher import NotificationDispatcher, notification_dispatcher
from fieldcrm.notifications.schemas import BookingConfirmation, StatusUpdateNotification
from fieldcrm.notifications.templates import STATUS_MESSAGES
from fieldcrm.scheduling.conflicts import build_report, check_conflict, detect_conflicts
from fieldcrm.scheduling.errors import (
    Conflict,
    Forbidden,
    InvalidAssignment,
    InvalidTimeRange,
    NotFound,
    SchedulingConflict,
)
from fieldcrm.scheduling.repository import AppointmentRepository
from fieldcrm.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentList,
    AppointmentRead,
    AppointmentUpdate,
    Pagination,
)
from fieldcrm.schemas.conflicts import ConflictCheckRequest, ConflictReport
from fieldcrm.schemas.events import EventName

logger = logging.getLogger(__name__)

_SOURCE = "scheduling.service"

# Enum-valued update fields stored as their string value
_ENUM_FIELDS = ("type", "status", "priority")


class AppointmentService:
    """Stateless lifecycle operations; AsyncSession and acting staff user passed per call.

    Customer notifications are handed to ``after_commit`` and only start once
    the request transaction has committed.
    """

    def __init__(
        self,
        store_factory: Callable[[AsyncSession], AppointmentRepository] = AppointmentRepository,
        notifier: NotificationDispatcher | None = None,
        after_commit: Callable[[AsyncSession, AfterCommitCallback], None] = run_after_commit,
    ) -> None:
        self._store_factory = store_factory
        self._notifier = notifier or notification_dispatcher
        self._after_commit = after_commit

    # ── Create ───────────────────────────────────────────────────────

    async def create_appointment(
        self,
        db: AsyncSession,
        actor: StaffUser,
        data: AppointmentCreate,
    ) -> Appointment:
        """Book a new appointment in the actor's organization.

        Raises:
            NotFound: customer is not in the organization.
            InvalidAssignment: assignee is not in the organization.
            InvalidTimeRange: start_time is not before end_time.
            SchedulingConflict: assignee already holds an overlapping active appointment.
        """
        store = self._store_factory(db)
        org_id = actor.organization_id

        customer = await store.get_customer(data.customer_id, org_id)
        if customer is None:
            raise NotFound("customer", "Customer not found or does not belong to your organization")

        if data.assigned_user_id is not None:
            await self._validate_assignee(store, data.assigned_user_id, org_id)

        _validate_range(data.start_time, data.end_time)
        await self._ensure_no_conflict(store, org_id, data.start_time, data.end_time, data.assigned_user_id)

        appointment = Appointment(
            organization_id=org_id,
            customer_id=customer.id,
            created_by=actor.id,
            assigned_user_id=data.assigned_user_id,
            title=data.title,
            description=data.description,
            start_time=data.start_time,
            end_time=data.end_time,
            type=data.type.value,
            priority=data.priority.value,
            status=AppointmentStatus.SCHEDULED.value,
            location=data.location or customer.address or "",
            estimated_duration=data.estimated_duration,
            price=data.price,
            notes=data.notes,
            tags=list(data.tags),
            custom_fields=data.custom_fields,
            send_reminder=data.send_reminder,
            reminder_time=data.reminder_time,
        )
        appointment = await store.insert(appointment)

        logger.info(
            "Appointment created: id=%s org=%s assignee=%s start=%s",
            appointment.id,
            org_id,
            appointment.assigned_user_id,
            appointment.start_time.isoformat(),
        )

        await track_event(org_id, EventName.APPOINTMENT_CREATED, {
            "appointment_id": str(appointment.id),
            "customer_id": str(appointment.customer_id),
            "type": appointment.type,
            "duration": data.estimated_duration,
        }, source_module=_SOURCE)

        if data.send_reminder:
            self._after_commit(db, functools.partial(self._send_booking_confirmation, appointment))

        return appointment

    # ── Update ───────────────────────────────────────────────────────

    async def update_appointment(
        self,
        db: AsyncSession,
        actor: StaffUser,
        appointment_id: uuid.UUID,
        patch: AppointmentUpdate,
    ) -> Appointment:
        """Apply a partial update.

        The interval is re-validated and conflict-checked when either bound or
        the assignee changes. Status changes are not restricted: any status may
        replace any other. ``completed_at`` is stamped only the first time the
        appointment becomes COMPLETED.
        """
        store = self._store_factory(db)
        org_id = actor.organization_id
        changes = patch.changes()

        existing = await store.find_by_id(appointment_id, org_id)
        if existing is None:
            raise NotFound("appointment")

        if changes.get("assigned_user_id") is not None:
            await self._validate_assignee(store, changes["assigned_user_id"], org_id)

        times_changed = "start_time" in changes or "end_time" in changes
        reassigned = changes.get("assigned_user_id") not in (None, existing.assigned_user_id)
        if times_changed or reassigned:
            start = changes.get("start_time", existing.start_time)
            end = changes.get("end_time", existing.end_time)
            _validate_range(start, end)
            assignee = changes["assigned_user_id"] if "assigned_user_id" in changes else existing.assigned_user_id
            await self._ensure_no_conflict(store, org_id, start, end, assignee, exclude_id=existing.id)

        for key in _ENUM_FIELDS:
            if changes.get(key) is not None:
                changes[key] = changes[key].value

        old_status = AppointmentStatus(existing.status)
        new_status = AppointmentStatus(changes["status"]) if "status" in changes else None
        previous_duration = existing.estimated_duration
        previous_price = existing.price

        if new_status == AppointmentStatus.COMPLETED and existing.completed_at is None:
            changes["completed_at"] = datetime.now(timezone.utc)

        updated = await store.update(existing, changes)
        logger.info("Appointment updated: id=%s fields=%s", updated.id, sorted(changes))

        if new_status is not None and new_status != old_status:
            await track_event(org_id, EventName.APPOINTMENT_STATUS_CHANGED, {
                "appointment_id": str(updated.id),
                "old_status": old_status.value,
                "new_status": new_status.value,
                "customer_id": str(updated.customer_id),
            }, source_module=_SOURCE)

            if new_status == AppointmentStatus.COMPLETED:
                await track_event(org_id, EventName.APPOINTMENT_COMPLETED, {
                    "appointment_id": str(updated.id),
                    "customer_id": str(updated.customer_id),
                    "duration": changes.get("actual_duration") or previous_duration,
                    "revenue": float(previous_price or 0),
                }, source_module=_SOURCE)

            self._after_commit(db, functools.partial(self._notify_status_change, updated, new_status))

        return updated

    # ── Cancel (soft delete) ─────────────────────────────────────────

    async def cancel_appointment(
        self,
        db: AsyncSession,
        actor: StaffUser,
        appointment_id: uuid.UUID,
    ) -> Appointment:
        """Mark an appointment CANCELLED and append an audit line to its notes.

        Appointments are never hard-deleted. Existing notes are kept as an
        exact prefix of the new notes.
        """
        if actor.role not in settings.scheduling.cancel_role_list:
            raise Forbidden("Insufficient permissions")

        store = self._store_factory(db)
        org_id = actor.organization_id

        appointment = await store.find_by_id(appointment_id, org_id)
        if appointment is None:
            raise NotFound("appointment")

        if appointment.status == AppointmentStatus.COMPLETED.value and appointment.invoice is not None:
            raise Conflict("Cannot cancel a completed appointment with an associated invoice")

        previous_status = appointment.status
        line = f"Cancelled by {actor.name} on {datetime.now(timezone.utc).isoformat()}"
        notes = f"{appointment.notes}\n\n{line}" if appointment.notes else line

        cancelled = await store.update(appointment, {
            "status": AppointmentStatus.CANCELLED.value,
            "notes": notes,
        })
        logger.info("Appointment cancelled: id=%s by=%s", cancelled.id, actor.id)

        await track_event(org_id, EventName.APPOINTMENT_CANCELLED, {
            "appointment_id": str(cancelled.id),
            "customer_id": str(cancelled.customer_id),
            "previous_status": previous_status,
        }, source_module=_SOURCE)

        return cancelled

    # ── Read ─────────────────────────────────────────────────────────

    async def get_appointment(
        self,
        db: AsyncSession,
        actor: StaffUser,
        appointment_id: uuid.UUID,
    ) -> Appointment:
        appointment = await self._store_factory(db).find_by_id(appointment_id, actor.organization_id)
        if appointment is None:
            raise NotFound("appointment")
        return appointment

    async def list_appointments(
        self,
        db: AsyncSession,
        actor: StaffUser,
        filters: AppointmentFilters,
    ) -> AppointmentList:
        """One page of the organization's appointments plus per-status counts."""
        store = self._store_factory(db)
        rows, total = await store.list_appointments(actor.organization_id, filters)
        stats = await store.status_counts(actor.organization_id)

        return AppointmentList(
            appointments=[AppointmentRead.model_validate(row) for row in rows],
            pagination=Pagination(
                page=filters.page,
                limit=filters.limit,
                total=total,
                pages=math.ceil(total / filters.limit),
            ),
            stats=stats,
        )

    async def check_conflicts(
        self,
        db: AsyncSession,
        actor: StaffUser,
        request: ConflictCheckRequest,
    ) -> ConflictReport:
        """Grade every conflict a proposed slot would create for a technician."""
        store = self._store_factory(db)
        org_id = actor.organization_id

        await self._validate_assignee(store, request.technician_id, org_id)
        _validate_range(request.start_time, request.end_time)

        findings = await detect_conflicts(
            store,
            org_id,
            request.technician_id,
            request.start_time,
            request.end_time,
            timedelta(minutes=settings.scheduling.travel_buffer_minutes),
            exclude_id=request.exclude_appointment_id,
        )
        return build_report(findings)

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    async def _validate_assignee(
        store: AppointmentRepository,
        user_id: uuid.UUID,
        org_id: uuid.UUID,
    ) -> StaffUser:
        staff = await store.get_staff(user_id, org_id)
        if staff is None:
            raise InvalidAssignment("Assigned user not found or does not belong to your organization")
        return staff

    @staticmethod
    async def _ensure_no_conflict(
        store: AppointmentRepository,
        org_id: uuid.UUID,
        start: datetime,
        end: datetime,
        assignee_id: uuid.UUID | None,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        if assignee_id is None:
            return
        if settings.scheduling.serialize_bookings:
            await store.lock_assignee(org_id, assignee_id)

        conflict = await check_conflict(store, org_id, start, end, assignee_id, exclude_id)
        if conflict is not None:
            raise SchedulingConflict(conflict)

    async def _send_booking_confirmation(self, appointment: Appointment) -> None:
        customer = appointment.customer
        try:
            await self._notifier.send_booking_confirmation(BookingConfirmation(
                appointment_id=appointment.id,
                customer_id=appointment.customer_id,
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
                appointment_date=appointment.start_time,
                service_type=appointment.title,
                technician=appointment.assigned_user.name if appointment.assigned_user else "TBD",
                location=appointment.location,
                estimated_duration=appointment.estimated_duration,
                notes=appointment.notes or "",
            ))
        except Exception:
            logger.exception("Failed to send appointment confirmation: appointment=%s", appointment.id)

    async def _notify_status_change(self, appointment: Appointment, status: AppointmentStatus) -> None:
        customer = appointment.customer
        try:
            channel = _preferred_channel(customer.preferences)
            if status not in STATUS_MESSAGES or channel is None:
                return

            await self._notifier.send_status_update(StatusUpdateNotification(
                appointment_id=appointment.id,
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
                channel=channel,
                status=status,
                service_type=appointment.title,
                appointment_date=appointment.start_time,
            ))
        except Exception:
            logger.exception("Failed to send status update notification: appointment=%s", appointment.id)


def _preferred_channel(preferences: Any) -> CommunicationChannel | None:
    """The customer's ``communication`` preference, or None when unset or unusable.

    ``preferences`` is free-form JSON, so anything other than an object with a
    known channel name is ignored.
    """
    if not isinstance(preferences, dict):
        return None
    value = preferences.get("communication")
    if not value:
        return None
    try:
        return CommunicationChannel(value)
    except ValueError:
        logger.warning("Ignoring unknown communication preference %r", value)
        return None


def _validate_range(start: datetime, end: datetime) -> None:
    if start >= end:
        raise InvalidTimeRange("Start time must be before end time")


# Module-level singleton
appointment_service = AppointmentService()
