"""Time-entry router: record check-in/out, daily summaries, org report."""


import calendar
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.auth.dependencies import get_organization_id, require_employee, require_role
from orghr.auth.models import AppUser
from orghr.common.constants import UserRole
from orghr.common.rate_limit import limiter
from orghr.database import get_db
from orghr.time_entries.schemas import (
    TimeEntryCreate,
    TimeEntryOut,
    TimeReportOut,
    TimeSummaryOut,
)
from orghr.time_entries.service import TimeEntryService

router = APIRouter(prefix="", tags=["time-entries"])

_admin = require_role(UserRole.org_admin)


def _range(start_date: Optional[date], end_date: Optional[date]) -> tuple[date, date]:
    """Default to the current month up to today.

    A lone start_date runs to the end of its month; a lone end_date starts
    at the first of its month.
    """
    today = datetime.now(timezone.utc).date()
    if start_date is None:
        return (end_date or today).replace(day=1), end_date or today
    if end_date is None:
        last_day = calendar.monthrange(start_date.year, start_date.month)[1]
        end_date = start_date.replace(day=last_day)
    return start_date, end_date


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=TimeEntryOut, status_code=201)
@limiter.limit("30/minute")
async def record_entry(
    request: Request,
    body: TimeEntryCreate,
    user: AppUser = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    """Record a check-in or check-out for the caller, stamped with server time."""
    return await TimeEntryService.record_entry(
        db,
        user.organization_id,
        user.employee_id,
        body.entry_type,
        notes=body.notes,
        actor_id=user.id,
    )


# ── GET /my ─────────────────────────────────────────────────────────

@router.get("/my", response_model=TimeSummaryOut)
async def my_summary(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: AppUser = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    """The caller's worked minutes per day, newest first."""
    start, end = _range(start_date, end_date)
    return await TimeEntryService.get_day_summaries(
        db, user.organization_id, user.employee_id, start, end,
    )


# ── GET /report ─────────────────────────────────────────────────────

@router.get("/report", response_model=TimeReportOut)
async def time_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Per-employee totals for the organization."""
    start, end = _range(start_date, end_date)
    return await TimeEntryService.employee_time_report(db, organization_id, start, end)


# ── GET /{employee_id}/summary ──────────────────────────────────────

@router.get("/{employee_id}/summary", response_model=TimeSummaryOut)
async def employee_summary(
    employee_id: uuid.UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    start, end = _range(start_date, end_date)
    return await TimeEntryService.get_day_summaries(
        db, organization_id, employee_id, start, end,
    )
