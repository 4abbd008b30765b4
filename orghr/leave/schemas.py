"""Leave Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Update / *Request  → request bodies (write)
  - *Out                          → response bodies (read)
  - *Brief                        → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from orghr.common.constants import (
    AccrualMethod,
    CarryForwardType,
    LeaveStatus,
    LeaveTransactionType,
)
from orghr.organizations.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class LeavePolicyBrief(BaseModel):
    """Minimal policy info embedded in balance and request responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    display_name: str
    is_active: bool = True


# ═════════════════════════════════════════════════════════════════════
# Leave Policy
# ═════════════════════════════════════════════════════════════════════


class LeavePolicyCreate(BaseModel):
    """Payload for adding a leave category to an organization."""

    code: str = Field(..., min_length=1, max_length=20, description="Short code, e.g. CL")
    display_name: str = Field(..., min_length=1, max_length=100)
    annual_quota: Decimal = Field(Decimal("0"), ge=0)
    accrual_method: AccrualMethod = AccrualMethod.yearly
    monthly_accrual_rate: Decimal = Field(Decimal("0"), ge=0)
    carry_forward_type: CarryForwardType = CarryForwardType.none
    carry_forward_limit: Decimal = Field(Decimal("0"), ge=0)
    allow_negative_balance: bool = False
    is_active: bool = True
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None

    @model_validator(mode="after")
    def validate_window(self) -> "LeavePolicyCreate":
        if self.effective_from and self.effective_to and self.effective_to < self.effective_from:
            raise ValueError("effective_to must be on or after effective_from.")
        return self


class LeavePolicyUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    code: Optional[str] = Field(None, min_length=1, max_length=20)
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    annual_quota: Optional[Decimal] = Field(None, ge=0)
    accrual_method: Optional[AccrualMethod] = None
    monthly_accrual_rate: Optional[Decimal] = Field(None, ge=0)
    carry_forward_type: Optional[CarryForwardType] = None
    carry_forward_limit: Optional[Decimal] = Field(None, ge=0)
    allow_negative_balance: Optional[bool] = None
    is_active: Optional[bool] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None


class LeavePolicyOut(BaseModel):
    """Full policy representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    code: str
    display_name: str
    annual_quota: Decimal
    accrual_method: AccrualMethod
    monthly_accrual_rate: Decimal
    carry_forward_type: CarryForwardType
    carry_forward_limit: Decimal
    allow_negative_balance: bool
    is_active: bool
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Balance for one policy/year. ``id`` is None for a not-yet-created row."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[uuid.UUID] = None
    employee_id: uuid.UUID
    policy_id: uuid.UUID
    year: int
    opening_balance: Decimal
    accrued: Decimal
    used: Decimal
    adjustment: Decimal
    current_balance: Decimal

    # Computed fields: filled by the ledger, not from ORM
    pending: Decimal = Decimal("0")
    available: Decimal = Decimal("0")

    policy: Optional[LeavePolicyBrief] = None


class LeaveTransactionOut(BaseModel):
    """One ledger write."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    balance_id: uuid.UUID
    policy_id: uuid.UUID
    transaction_type: LeaveTransactionType
    field: str
    amount: Decimal
    balance_after: Decimal
    reference_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime


class BalanceAdjustRequest(BaseModel):
    """Admin balance correction: adds a signed amount to ``adjustment``."""

    policy_id: uuid.UUID
    amount: Decimal = Field(..., description="Positive to credit, negative to debit")
    reason: str = Field(..., min_length=3, max_length=500)
    year: Optional[int] = Field(None, description="Target year; defaults to current year")


class BalanceSetAdjustmentRequest(BaseModel):
    """Admin balance correction: sets ``adjustment`` to an absolute value."""

    policy_id: uuid.UUID
    value: Decimal
    reason: str = Field(..., min_length=3, max_length=500)
    year: Optional[int] = Field(None, description="Target year; defaults to current year")


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request."""

    policy_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000)


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    employee_id: uuid.UUID
    policy_id: uuid.UUID
    leave_type: str
    start_date: date
    end_date: date
    total_days: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    # Enriched by service
    available_balance: Optional[Decimal] = None
    employee: Optional[EmployeeBrief] = None
    policy: Optional[LeavePolicyBrief] = None


class LeaveReviewRequest(BaseModel):
    """Optional notes attached to an approval, rejection or cancellation."""

    notes: Optional[str] = Field(None, max_length=500)
