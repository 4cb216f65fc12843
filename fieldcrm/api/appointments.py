"""Appointment and scheduling JSON API.

All routes require HTTP Basic Auth via the verify_staff dependency and are
scoped to the authenticated staff member's organization.
"""
# ruff: noqa: B008

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcrm.api.auth import verify_staff
from fieldcrm.db.engine import get_session
from fieldcrm.models.enums import AppointmentStatus, AppointmentType
from fieldcrm.models.staff import StaffUser
from fieldcrm.scheduling.errors import (
    Conflict,
    Forbidden,
    InvalidAssignment,
    InvalidTimeRange,
    NotFound,
    SchedulingConflict,
    SchedulingError,
)
from fieldcrm.scheduling.service import AppointmentService, appointment_service
from fieldcrm.schemas.appointments import (
    AppointmentCreate,
    AppointmentEnvelope,
    AppointmentFilters,
    AppointmentList,
    AppointmentRead,
    AppointmentUpdate,
)
from fieldcrm.schemas.conflicts import ConflictCheckRequest, ConflictReport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["appointments"])

_STATUS_CODES: dict[type[SchedulingError], int] = {
    InvalidAssignment: status.HTTP_400_BAD_REQUEST,
    InvalidTimeRange: status.HTTP_400_BAD_REQUEST,
    Conflict: status.HTTP_400_BAD_REQUEST,
    Forbidden: status.HTTP_403_FORBIDDEN,
}


def get_appointment_service() -> AppointmentService:
    """Dependency hook so tests can swap the service."""
    return appointment_service


def _error_response(exc: SchedulingError) -> JSONResponse:
    """Translate a domain error into its HTTP response."""
    if isinstance(exc, SchedulingConflict):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": exc.message, "conflict": exc.conflict.model_dump(mode="json")},
        )
    if isinstance(exc, NotFound):
        # A missing appointment is the resource itself; a missing customer is bad input
        code = status.HTTP_404_NOT_FOUND if exc.entity == "appointment" else status.HTTP_400_BAD_REQUEST
    else:
        code = _STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content={"error": exc.message})


@router.get("/appointments", response_model=AppointmentList)
async def list_appointments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    type_filter: AppointmentType | None = Query(None, alias="type"),
    assigned_user_id: uuid.UUID | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    search: str | None = Query(None),
    db: AsyncSession = Depends(get_session),
    staff: StaffUser = Depends(verify_staff),
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentList:
    """Paginated appointment list with filters and per-status stats."""
    filters = AppointmentFilters(
        page=page,
        limit=limit,
        status=status_filter,
        type=type_filter,
        assigned_user_id=assigned_user_id,
        start_date=start_date,
        end_date=end_date,
        search=search or None,
    )
    return await service.list_appointments(db, staff, filters)


@router.post("/appointments", response_model=AppointmentEnvelope, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    body: AppointmentCreate,
    db: AsyncSession = Depends(get_session),
    staff: StaffUser = Depends(verify_staff),
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentEnvelope | JSONResponse:
    """Book an appointment; 409 with the conflicting appointment on overlap."""
    try:
        appointment = await service.create_appointment(db, staff, body)
    except SchedulingError as exc:
        return _error_response(exc)

    return AppointmentEnvelope(
        message="Appointment created successfully",
        appointment=AppointmentRead.model_validate(appointment),
    )


@router.get("/appointments/{appointment_id}", response_model=AppointmentRead)
async def get_appointment(
    appointment_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    staff: StaffUser = Depends(verify_staff),
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentRead | JSONResponse:
    try:
        appointment = await service.get_appointment(db, staff, appointment_id)
    except SchedulingError as exc:
        return _error_response(exc)
    return AppointmentRead.model_validate(appointment)


@router.put("/appointments/{appointment_id}", response_model=AppointmentEnvelope)
async def update_appointment(
    appointment_id: uuid.UUID,
    body: AppointmentUpdate,
    db: AsyncSession = Depends(get_session),
    staff: StaffUser = Depends(verify_staff),
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentEnvelope | JSONResponse:
    """Partial update; reschedules are re-checked for conflicts."""
    try:
        appointment = await service.update_appointment(db, staff, appointment_id, body)
    except SchedulingError as exc:
        return _error_response(exc)

    return AppointmentEnvelope(
        message="Appointment updated successfully",
        appointment=AppointmentRead.model_validate(appointment),
    )


@router.delete("/appointments/{appointment_id}")
async def cancel_appointment(
    appointment_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    staff: StaffUser = Depends(verify_staff),
    service: AppointmentService = Depends(get_appointment_service),
) -> JSONResponse:
    """Soft delete — the appointment is cancelled, never removed."""
    try:
        await service.cancel_appointment(db, staff, appointment_id)
    except SchedulingError as exc:
        return _error_response(exc)

    return JSONResponse({"success": True, "message": "Appointment cancelled successfully"})


@router.post("/scheduling/conflicts", response_model=ConflictReport)
async def check_conflicts(
    body: ConflictCheckRequest,
    db: AsyncSession = Depends(get_session),
    staff: StaffUser = Depends(verify_staff),
    service: AppointmentService = Depends(get_appointment_service),
) -> ConflictReport | JSONResponse:
    """Graded conflict report for a proposed technician slot."""
    try:
        return await service.check_conflicts(db, staff, body)
    except SchedulingError as exc:
        return _error_response(exc)
