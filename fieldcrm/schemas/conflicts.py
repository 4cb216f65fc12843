"""Schemas for scheduling conflicts — the create/update error payload and the
stand-alone conflict check report."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fieldcrm.models.enums import ConflictSeverity
from fieldcrm.schemas.appointments import as_utc


class ConflictDetail(BaseModel):
    """The first active appointment that overlaps a candidate interval."""

    model_config = ConfigDict(frozen=True)

    appointment_id: uuid.UUID
    customer_name: str
    start_time: datetime
    end_time: datetime


class ConflictCheckRequest(BaseModel):
    """Body of POST /api/scheduling/conflicts."""

    technician_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    exclude_appointment_id: uuid.UUID | None = None

    normalize_timezone = field_validator("start_time", "end_time")(as_utc)


class ConflictFinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    appointment_id: uuid.UUID
    conflict: str
    severity: ConflictSeverity


class ConflictSummary(BaseModel):
    total: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class ConflictReport(BaseModel):
    """Graded conflict findings for a proposed slot."""

    success: bool = True
    has_conflicts: bool
    can_schedule: bool
    needs_attention: bool
    conflicts: list[ConflictFinding] = Field(default_factory=list)
    summary: ConflictSummary
    recommendation: str
