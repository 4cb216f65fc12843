"""Appointment conflict detection.

Intervals are half-open ``[start, end)``: an appointment ending at 10:00 does
not conflict with one starting at 10:00. Only appointments in an active status
(SCHEDULED, CONFIRMED, IN_PROGRESS) hold a slot, and unassigned appointments
are never checked.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from fieldcrm.models.enums import ACTIVE_STATUSES, ConflictSeverity
from fieldcrm.schemas.conflicts import ConflictDetail, ConflictFinding, ConflictReport, ConflictSummary

if TYPE_CHECKING:
    from fieldcrm.scheduling.repository import AppointmentRepository

logger = logging.getLogger(__name__)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """True if ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect."""
    return a_start < b_end and b_start < a_end


async def check_conflict(
    store: AppointmentRepository,
    organization_id: uuid.UUID,
    start: datetime,
    end: datetime,
    assignee_id: uuid.UUID | None,
    exclude_id: uuid.UUID | None = None,
) -> ConflictDetail | None:
    """Return the earliest active appointment of ``assignee_id`` overlapping ``[start, end)``.

    Shared by create and update; ``exclude_id`` keeps an appointment from
    conflicting with itself when it is rescheduled.
    """
    if assignee_id is None:
        return None

    overlapping = await store.find_overlapping(
        organization_id, assignee_id, start, end, ACTIVE_STATUSES, exclude_id
    )
    if not overlapping:
        return None

    first = overlapping[0]
    logger.info(
        "Scheduling conflict: assignee=%s candidate=[%s, %s) clashes with appointment=%s",
        assignee_id,
        start.isoformat(),
        end.isoformat(),
        first.id,
    )
    return ConflictDetail(
        appointment_id=first.id,
        customer_name=first.customer.name,
        start_time=first.start_time,
        end_time=first.end_time,
    )


async def detect_conflicts(
    store: AppointmentRepository,
    organization_id: uuid.UUID,
    technician_id: uuid.UUID,
    start: datetime,
    end: datetime,
    travel_buffer: timedelta,
    exclude_id: uuid.UUID | None = None,
) -> list[ConflictFinding]:
    """Grade every conflict around a proposed slot.

    HIGH: direct overlap. MEDIUM: a neighbouring appointment leaves less than
    ``travel_buffer`` to get there or away.
    """
    findings: list[ConflictFinding] = []

    overlapping = await store.find_overlapping(
        organization_id, technician_id, start, end, ACTIVE_STATUSES, exclude_id
    )
    for appt in overlapping:
        findings.append(ConflictFinding(
            appointment_id=appt.id,
            conflict=f"Direct time overlap with {appt.customer.name}",
            severity=ConflictSeverity.HIGH,
        ))

    adjacent = await store.find_adjacent(
        organization_id, technician_id, start, end, travel_buffer, ACTIVE_STATUSES, exclude_id
    )
    need_minutes = math.ceil(travel_buffer.total_seconds() / 60)
    for appt in adjacent:
        if appt.end_time <= start:
            message = f"Insufficient travel time from previous appointment (need {need_minutes} minutes)"
        else:
            message = f"Insufficient travel time to next appointment (need {need_minutes} minutes)"
        findings.append(ConflictFinding(
            appointment_id=appt.id,
            conflict=message,
            severity=ConflictSeverity.MEDIUM,
        ))

    return findings


def build_report(findings: list[ConflictFinding]) -> ConflictReport:
    """Summarize graded findings into a schedule/don't-schedule recommendation."""
    summary = ConflictSummary(
        total=len(findings),
        high=sum(1 for f in findings if f.severity == ConflictSeverity.HIGH),
        medium=sum(1 for f in findings if f.severity == ConflictSeverity.MEDIUM),
        low=sum(1 for f in findings if f.severity == ConflictSeverity.LOW),
    )

    if summary.high:
        recommendation = (
            "Cannot schedule - direct time conflicts detected. Please choose a different time slot."
        )
    elif summary.medium:
        recommendation = (
            "Can schedule with caution - travel time may be tight. Consider adjusting appointment times."
        )
    elif summary.total:
        recommendation = "Can schedule - minor considerations noted but no significant conflicts."
    else:
        recommendation = "Perfect time slot - no conflicts detected."

    return ConflictReport(
        has_conflicts=summary.total > 0,
        can_schedule=summary.high == 0,
        needs_attention=summary.medium > 0,
        conflicts=findings,
        summary=summary,
        recommendation=recommendation,
    )
