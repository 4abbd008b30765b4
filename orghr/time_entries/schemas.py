"""Time-entry Pydantic v2 schemas."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from orghr.common.constants import TimeEntryType
from orghr.organizations.schemas import EmployeeBrief


class TimeEntryCreate(BaseModel):
    entry_type: TimeEntryType
    notes: Optional[str] = Field(None, max_length=500)


class TimeEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    date: dt.date
    entry_type: TimeEntryType
    entry_time: dt.datetime
    notes: Optional[str] = None
    created_at: dt.datetime


class DaySummary(BaseModel):
    """Worked minutes for one calendar day.

    ``has_unpaired`` marks days whose entries did not pair up cleanly; those
    entries contribute nothing to ``total_minutes``.
    """

    date: dt.date
    total_minutes: int = 0
    entry_count: int = 0
    has_unpaired: bool = False


class TimeSummaryOut(BaseModel):
    employee_id: uuid.UUID
    start_date: dt.date
    end_date: dt.date
    total_minutes: int
    days: list[DaySummary]


class EmployeeTimeReportRow(BaseModel):
    employee: EmployeeBrief
    total_minutes: int = 0
    days_worked: int = 0


class TimeReportOut(BaseModel):
    start_date: dt.date
    end_date: dt.date
    data: list[EmployeeTimeReportRow]
