"""Time-entry service layer: record events, daily summaries, org report."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.common.audit import create_audit_entry
from orghr.common.constants import TimeEntryType
from orghr.common.exceptions import ValidationException
from orghr.config import settings
from orghr.organizations.schemas import EmployeeBrief
from orghr.organizations.service import OrganizationService
from orghr.time_entries.aggregator import aggregate
from orghr.time_entries.models import TimeEntry
from orghr.time_entries.schemas import (
    EmployeeTimeReportRow,
    TimeEntryOut,
    TimeReportOut,
    TimeSummaryOut,
)

logger = logging.getLogger(__name__)


class TimeEntryService:
    """Async time-entry operations."""

    @staticmethod
    def _validate_date_range(start_date: date, end_date: date) -> None:
        """Ensure the range is ordered and within TIME_ENTRY_MAX_RANGE_DAYS."""
        max_days = settings.TIME_ENTRY_MAX_RANGE_DAYS
        if start_date > end_date:
            raise ValidationException(
                {"date_range": ["start_date must be before or equal to end_date."]}
            )
        if (end_date - start_date).days > max_days:
            raise ValidationException(
                {"date_range": [f"Date range cannot exceed {max_days} days."]}
            )

    # ── Record ──────────────────────────────────────────────────────

    @staticmethod
    async def record_entry(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        entry_type: TimeEntryType,
        *,
        at: Optional[datetime] = None,
        notes: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TimeEntryOut:
        """Store one check-in / check-out event, dated by its timestamp."""
        await OrganizationService.get_employee(db, organization_id, employee_id)
        entry_time = at or datetime.now(timezone.utc)
        # Naive timestamps are taken as UTC
        if entry_time.tzinfo is None:
            entry_time = entry_time.replace(tzinfo=timezone.utc)

        entry = TimeEntry(
            organization_id=organization_id,
            employee_id=employee_id,
            date=entry_time.astimezone(timezone.utc).date(),
            entry_type=entry_type,
            entry_time=entry_time,
            notes=notes,
        )
        db.add(entry)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="time_entry",
            entity_id=entry.id,
            organization_id=organization_id,
            actor_id=actor_id,
            new_values={
                "entry_type": entry_type.value,
                "entry_time": entry_time.isoformat(),
            },
        )
        logger.debug("Recorded %s for employee %s at %s", entry_type.value, employee_id, entry_time)
        return TimeEntryOut.model_validate(entry)

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def get_day_summaries(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> TimeSummaryOut:
        """Worked minutes per day for one employee, newest day first."""
        TimeEntryService._validate_date_range(start_date, end_date)
        await OrganizationService.get_employee(
            db, organization_id, employee_id, active_only=False,
        )

        result = await db.execute(
            select(TimeEntry).where(
                TimeEntry.organization_id == organization_id,
                TimeEntry.employee_id == employee_id,
                TimeEntry.date >= start_date,
                TimeEntry.date <= end_date,
            )
        )
        summaries = aggregate(result.scalars().all())
        days = list(summaries)

        return TimeSummaryOut(
            employee_id=employee_id,
            start_date=start_date,
            end_date=end_date,
            total_minutes=summaries.total_minutes(),
            days=days,
        )

    @staticmethod
    async def employee_time_report(
        db: AsyncSession,
        organization_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> TimeReportOut:
        """Totals per active employee over a range, most minutes first."""
        TimeEntryService._validate_date_range(start_date, end_date)
        employees = await OrganizationService.list_active_employees(db, organization_id)

        result = await db.execute(
            select(TimeEntry).where(
                TimeEntry.organization_id == organization_id,
                TimeEntry.date >= start_date,
                TimeEntry.date <= end_date,
            )
        )
        by_employee: dict[uuid.UUID, list[TimeEntry]] = defaultdict(list)
        for entry in result.scalars().all():
            by_employee[entry.employee_id].append(entry)

        rows: list[EmployeeTimeReportRow] = []
        for emp in employees:
            days = list(aggregate(by_employee.get(emp.id, [])))
            rows.append(
                EmployeeTimeReportRow(
                    employee=EmployeeBrief.model_validate(emp),
                    total_minutes=sum(d.total_minutes for d in days),
                    days_worked=len(days),
                )
            )

        # Stable sort keeps employee_code order among equal totals
        rows.sort(key=lambda r: r.total_minutes, reverse=True)
        return TimeReportOut(start_date=start_date, end_date=end_date, data=rows)
