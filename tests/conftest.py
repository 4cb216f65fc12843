"""Shared fixtures: an in-memory appointment store and record factories.

The store mirrors AppointmentRepository's interface over plain lists so the
lifecycle rules can be tested without PostgreSQL.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest

from fieldcrm.models.appointment import Appointment
from fieldcrm.models.customer import Customer
from fieldcrm.models.enums import AppointmentStatus, StaffRole
from fieldcrm.models.invoice import Invoice
from fieldcrm.models.staff import StaffUser
from fieldcrm.scheduling.conflicts import intervals_overlap
from fieldcrm.schemas.appointments import AppointmentFilters

class InMemoryAppointmentStore:
    """List-backed stand-in for AppointmentRepository."""

    def __init__(self) -> None:
        self.customers: dict[uuid.UUID, Customer] = {}
        self.staff: dict[uuid.UUID, StaffUser] = {}
        self.appointments: list[Appointment] = []
        self.locked: list[tuple[uuid.UUID, uuid.UUID]] = []

    # ── Seeding ──────────────────────────────────────────────────────

    def add_customer(self, org_id: uuid.UUID, **overrides: Any) -> Customer:
        fields: dict[str, Any] = {
            "id": uuid.uuid4(),
            "organization_id": org_id,
            "name": "Jane Doe",
            "email": "jane@example.com",
            "phone": "+15550100",
            "address": "12 Elm Street",
            "preferences": {},
        }
        fields.update(overrides)
        customer = Customer(**fields)
        self.customers[customer.id] = customer
        return customer

    def add_staff(self, org_id: uuid.UUID, role: StaffRole = StaffRole.TECHNICIAN, **overrides: Any) -> StaffUser:
        fields: dict[str, Any] = {
            "id": uuid.uuid4(),
            "organization_id": org_id,
            "name": "Tom Tech",
            "email": f"{uuid.uuid4().hex[:8]}@fieldcrm.test",
            "role": role.value,
        }
        fields.update(overrides)
        staff = StaffUser(**fields)
        self.staff[staff.id] = staff
        return staff

    def add_appointment(
        self,
        customer: Customer,
        creator: StaffUser,
        start: datetime,
        end: datetime,
        assignee: StaffUser | None = None,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        **overrides: Any,
    ) -> Appointment:
        fields: dict[str, Any] = {
            "id": uuid.uuid4(),
            "organization_id": customer.organization_id,
            "customer_id": customer.id,
            "created_by": creator.id,
            "assigned_user_id": assignee.id if assignee else None,
            "title": "Boiler service",
            "location": customer.address or "",
            "type": "MAINTENANCE",
            "priority": "NORMAL",
            "tags": [],
            "start_time": start,
            "end_time": end,
            "estimated_duration": 60,
            "status": status.value,
            "price": Decimal("120.00"),
            "send_reminder": False,
            "reminder_time": 24,
            "created_at": start - timedelta(days=7),
            "updated_at": start - timedelta(days=7),
        }
        fields.update(overrides)
        appointment = Appointment(**fields)
        self._attach(appointment)
        self.appointments.append(appointment)
        return appointment

    def attach_invoice(self, appointment: Appointment) -> Invoice:
        invoice = Invoice(
            id=uuid.uuid4(),
            organization_id=appointment.organization_id,
            appointment_id=appointment.id,
            invoice_number="INV-0001",
            status="PAID",
            total=appointment.price or Decimal("0"),
        )
        appointment.invoice = invoice
        return invoice

    def _attach(self, appointment: Appointment) -> None:
        appointment.customer = self.customers[appointment.customer_id]
        appointment.creator = self.staff[appointment.created_by]
        appointment.assigned_user = self.staff.get(appointment.assigned_user_id) if appointment.assigned_user_id else None

    # ── AppointmentRepository interface ──────────────────────────────

    async def get_customer(self, customer_id: uuid.UUID, organization_id: uuid.UUID) -> Customer | None:
        customer = self.customers.get(customer_id)
        if customer is None or customer.organization_id != organization_id:
            return None
        return customer

    async def get_staff(self, user_id: uuid.UUID, organization_id: uuid.UUID) -> StaffUser | None:
        staff = self.staff.get(user_id)
        if staff is None or staff.organization_id != organization_id:
            return None
        return staff

    async def find_by_id(self, appointment_id: uuid.UUID, organization_id: uuid.UUID) -> Appointment | None:
        for appt in self.appointments:
            if appt.id == appointment_id and appt.organization_id == organization_id:
                return appt
        return None

    def _assignee_rows(self, organization_id, assignee_id, statuses, exclude_id):
        values = {s.value for s in statuses}
        return [
            a for a in self.appointments
            if a.organization_id == organization_id
            and a.assigned_user_id == assignee_id
            and a.status in values
            and a.id != exclude_id
        ]

    async def find_overlapping(self, organization_id, assignee_id, start, end, statuses, exclude_id=None):
        rows = [
            a for a in self._assignee_rows(organization_id, assignee_id, statuses, exclude_id)
            if intervals_overlap(a.start_time, a.end_time, start, end)
        ]
        return sorted(rows, key=lambda a: (a.start_time, str(a.id)))

    async def find_adjacent(self, organization_id, assignee_id, start, end, buffer, statuses, exclude_id=None):
        if buffer <= timedelta(0):
            return []
        rows = [
            a for a in self._assignee_rows(organization_id, assignee_id, statuses, exclude_id)
            if (start - buffer < a.end_time <= start) or (end <= a.start_time < end + buffer)
        ]
        return sorted(rows, key=lambda a: (a.start_time, str(a.id)))

    async def insert(self, appointment: Appointment) -> Appointment:
        now = datetime.now(timezone.utc)
        appointment.id = uuid.uuid4()
        appointment.created_at = now
        appointment.updated_at = now
        self._attach(appointment)
        self.appointments.append(appointment)
        return appointment

    async def update(self, appointment: Appointment, changes: dict[str, Any]) -> Appointment:
        for field, value in changes.items():
            setattr(appointment, field, value)
        appointment.updated_at = datetime.now(timezone.utc)
        self._attach(appointment)
        return appointment

    async def lock_assignee(self, organization_id: uuid.UUID, assignee_id: uuid.UUID) -> None:
        self.locked.append((organization_id, assignee_id))

    async def list_appointments(self, organization_id: uuid.UUID, filters: AppointmentFilters):
        rows = [a for a in self.appointments if a.organization_id == organization_id]
        if filters.status is not None:
            rows = [a for a in rows if a.status == filters.status.value]
        rows.sort(key=lambda a: a.start_time)
        offset = (filters.page - 1) * filters.limit
        return rows[offset:offset + filters.limit], len(rows)

    async def status_counts(self, organization_id: uuid.UUID) -> dict[str, int]:
        counts: dict[str, int] = {}
        for appt in self.appointments:
            if appt.organization_id == organization_id:
                counts[appt.status.lower()] = counts.get(appt.status.lower(), 0) + 1
        return counts


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def org_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def store() -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore()


@pytest.fixture
def manager(store, org_id) -> StaffUser:
    return store.add_staff(org_id, StaffRole.MANAGER, name="Maria Manager")


@pytest.fixture
def technician(store, org_id) -> StaffUser:
    return store.add_staff(org_id, StaffRole.TECHNICIAN, name="Tom Tech")


@pytest.fixture
def customer(store, org_id) -> Customer:
    return store.add_customer(org_id)
