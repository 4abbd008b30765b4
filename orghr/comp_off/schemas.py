"""Comp-off Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from orghr.common.constants import CompOffSource
from orghr.leave.schemas import LeaveBalanceOut
from orghr.organizations.schemas import EmployeeBrief


class CompOffGrantCreate(BaseModel):
    """Admin payload for recording earned comp-off."""

    employee_id: uuid.UUID
    work_date: date = Field(..., description="Date the extra work was done")
    hours_worked: Decimal = Field(Decimal("8"), ge=0)
    days_granted: Decimal = Field(..., ge=0, description="Leave days to credit on apply")
    source: CompOffSource = CompOffSource.manual
    reason: Optional[str] = Field(None, max_length=1000)


class CompOffApplyRequest(BaseModel):
    year: Optional[int] = Field(
        None, description="Leave year to credit; defaults to the current year"
    )


class CompOffGrantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    employee_id: uuid.UUID
    work_date: date
    hours_worked: Decimal
    days_granted: Decimal
    source: CompOffSource
    reason: Optional[str] = None
    granted_by: Optional[uuid.UUID] = None
    is_applied: bool
    applied_at: Optional[datetime] = None
    balance_year: Optional[int] = None
    created_at: datetime

    # Enriched by service
    employee: Optional[EmployeeBrief] = None


class CompOffApplyOut(BaseModel):
    """Result of applying a grant: the grant and the balance it credited."""

    grant: CompOffGrantOut
    balance: LeaveBalanceOut
