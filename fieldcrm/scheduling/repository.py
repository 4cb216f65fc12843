"""Tenant-scoped data access for appointments and the records they reference.

Every read takes the caller's ``organization_id`` explicitly; no query in this
module can reach rows of another organization.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fieldcrm.models.appointment import Appointment
from fieldcrm.models.customer import Customer
from fieldcrm.models.enums import AppointmentStatus
from fieldcrm.models.staff import StaffUser
from fieldcrm.schemas.appointments import AppointmentFilters

logger = logging.getLogger(__name__)

_RELATIONS = ["customer", "assigned_user", "creator", "invoice"]


def _with_relations(stmt: Select[Any]) -> Select[Any]:
    return stmt.options(
        selectinload(Appointment.customer),
        selectinload(Appointment.assigned_user),
        selectinload(Appointment.creator),
        selectinload(Appointment.invoice),
    )


def _status_values(statuses: Iterable[AppointmentStatus]) -> list[str]:
    return sorted(s.value for s in statuses)


class AppointmentRepository:
    """Record store over one AsyncSession (one request, one transaction)."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # ── Referenced records ───────────────────────────────────────────

    async def get_customer(self, customer_id: uuid.UUID, organization_id: uuid.UUID) -> Customer | None:
        result = await self._db.execute(
            select(Customer).where(
                Customer.id == customer_id,
                Customer.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_staff(self, user_id: uuid.UUID, organization_id: uuid.UUID) -> StaffUser | None:
        result = await self._db.execute(
            select(StaffUser).where(
                StaffUser.id == user_id,
                StaffUser.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    # ── Appointments ─────────────────────────────────────────────────

    async def find_by_id(
        self,
        appointment_id: uuid.UUID,
        organization_id: uuid.UUID,
    ) -> Appointment | None:
        """Return the appointment with customer, assignee, creator and invoice loaded."""
        result = await self._db.execute(
            _with_relations(
                select(Appointment).where(
                    Appointment.id == appointment_id,
                    Appointment.organization_id == organization_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def find_overlapping(
        self,
        organization_id: uuid.UUID,
        assignee_id: uuid.UUID,
        start: datetime,
        end: datetime,
        statuses: Iterable[AppointmentStatus],
        exclude_id: uuid.UUID | None = None,
    ) -> list[Appointment]:
        """Appointments of ``assignee_id`` whose interval intersects ``[start, end)``.

        Ordered by start_time so the first element is the earliest conflict.
        """
        stmt = (
            select(Appointment)
            .where(
                Appointment.organization_id == organization_id,
                Appointment.assigned_user_id == assignee_id,
                Appointment.status.in_(_status_values(statuses)),
                Appointment.start_time < end,
                Appointment.end_time > start,
            )
            .options(selectinload(Appointment.customer))
            .order_by(Appointment.start_time.asc(), Appointment.id.asc())
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)

        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def find_adjacent(
        self,
        organization_id: uuid.UUID,
        assignee_id: uuid.UUID,
        start: datetime,
        end: datetime,
        buffer: timedelta,
        statuses: Iterable[AppointmentStatus],
        exclude_id: uuid.UUID | None = None,
    ) -> list[Appointment]:
        """Non-overlapping appointments closer than ``buffer`` to either side of ``[start, end)``."""
        if buffer <= timedelta(0):
            return []

        stmt = (
            select(Appointment)
            .where(
                Appointment.organization_id == organization_id,
                Appointment.assigned_user_id == assignee_id,
                Appointment.status.in_(_status_values(statuses)),
                or_(
                    and_(Appointment.end_time <= start, Appointment.end_time > start - buffer),
                    and_(Appointment.start_time >= end, Appointment.start_time < end + buffer),
                ),
            )
            .options(selectinload(Appointment.customer))
            .order_by(Appointment.start_time.asc(), Appointment.id.asc())
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)

        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def insert(self, appointment: Appointment) -> Appointment:
        self._db.add(appointment)
        return await self._reload(appointment)

    async def update(self, appointment: Appointment, changes: dict[str, Any]) -> Appointment:
        for field, value in changes.items():
            setattr(appointment, field, value)
        return await self._reload(appointment)

    async def _reload(self, appointment: Appointment) -> Appointment:
        """Flush, then reload server-side columns and relations for serialization."""
        await self._db.flush()
        await self._db.refresh(appointment)
        await self._db.refresh(appointment, _RELATIONS)
        return appointment

    async def lock_assignee(self, organization_id: uuid.UUID, assignee_id: uuid.UUID) -> None:
        """Serialize bookings for one assignee until the current transaction ends.

        PostgreSQL transaction-scoped advisory lock keyed on (organization, assignee).
        """
        key = f"appointments:{organization_id}:{assignee_id}"
        await self._db.execute(select(func.pg_advisory_xact_lock(func.hashtextextended(key, 0))))
        logger.debug("Advisory lock acquired: %s", key)

    # ── Listing ──────────────────────────────────────────────────────

    async def list_appointments(
        self,
        organization_id: uuid.UUID,
        filters: AppointmentFilters,
    ) -> tuple[list[Appointment], int]:
        """Return one page of appointments (start_time ascending) and the total match count."""
        stmt = select(Appointment).where(Appointment.organization_id == organization_id)

        if filters.status is not None:
            stmt = stmt.where(Appointment.status == filters.status.value)
        if filters.type is not None:
            stmt = stmt.where(Appointment.type == filters.type.value)
        if filters.assigned_user_id is not None:
            stmt = stmt.where(Appointment.assigned_user_id == filters.assigned_user_id)
        if filters.start_date is not None and filters.end_date is not None:
            stmt = stmt.where(
                Appointment.start_time >= filters.start_date,
                Appointment.start_time <= filters.end_date,
            )
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.join(Customer, Appointment.customer_id == Customer.id).where(
                or_(
                    Appointment.title.ilike(pattern),
                    Appointment.description.ilike(pattern),
                    Appointment.location.ilike(pattern),
                    Customer.name.ilike(pattern),
                )
            )

        total_result = await self._db.execute(select(func.count()).select_from(stmt.subquery()))
        total = total_result.scalar() or 0

        result = await self._db.execute(
            _with_relations(stmt)
            .order_by(Appointment.start_time.asc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        return list(result.scalars().all()), total

    async def status_counts(self, organization_id: uuid.UUID) -> dict[str, int]:
        """Count appointments per status for the whole organization (lower-case keys)."""
        result = await self._db.execute(
            select(Appointment.status, func.count(Appointment.id))
            .where(Appointment.organization_id == organization_id)
            .group_by(Appointment.status)
        )
        return {status.lower(): count for status, count in result.all()}
