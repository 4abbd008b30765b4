"""Leave ORM models: LeavePolicy, LeaveBalance, LeaveTransaction, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column

from orghr.common.constants import (
    AccrualMethod,
    CarryForwardType,
    LeaveStatus,
    LeaveTransactionType,
)
from orghr.database import Base

DAYS = sa.Numeric(6, 2)
ZERO = Decimal("0")


def compute_current_balance(opening, accrued, used, adjustment):
    """``opening + accrued - used + adjustment``.

    Works on Decimals and on column expressions alike, so the same
    definition backs the Python attribute and the SQL expression.
    """
    return opening + accrued - used + adjustment


class LeavePolicy(Base):
    """A leave category offered by one organization (CL, PL, SL, COMP_OFF ...)."""

    __tablename__ = "leave_policies"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "code", name="uq_leave_policy_org_code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    display_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    annual_quota: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=ZERO)
    accrual_method: Mapped[AccrualMethod] = mapped_column(
        sa.Enum(AccrualMethod, name="accrual_method", create_type=False),
        server_default="yearly",
        default=AccrualMethod.yearly,
    )
    monthly_accrual_rate: Mapped[Decimal] = mapped_column(DAYS, default=ZERO)
    carry_forward_type: Mapped[CarryForwardType] = mapped_column(
        sa.Enum(CarryForwardType, name="carry_forward_type", create_type=False),
        server_default="none",
        default=CarryForwardType.none,
    )
    carry_forward_limit: Mapped[Decimal] = mapped_column(DAYS, default=ZERO)
    allow_negative_balance: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.false(), default=False,
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.true(), default=True,
    )
    effective_from: Mapped[Optional[date]] = mapped_column(sa.Date)
    effective_to: Mapped[Optional[date]] = mapped_column(sa.Date)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    @property
    def opening_entitlement(self) -> Decimal:
        """Opening balance given to a freshly created balance row."""
        if self.accrual_method == AccrualMethod.yearly:
            return self.annual_quota
        return ZERO


class LeaveBalance(Base):
    """Per employee, per policy, per year. The current balance is never stored."""

    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "policy_id", "year", name="uq_leave_balance"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_policies.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    opening_balance: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=ZERO)
    accrued: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=ZERO)
    used: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=ZERO)
    adjustment: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=ZERO)
    last_accrued_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    @hybrid_property
    def current_balance(self) -> Decimal:
        return compute_current_balance(
            self.opening_balance, self.accrued, self.used, self.adjustment,
        )

    @current_balance.expression
    def current_balance(cls):
        return compute_current_balance(
            cls.opening_balance, cls.accrued, cls.used, cls.adjustment,
        )


class LeaveTransaction(Base):
    """Append-only record of every write to a balance component."""

    __tablename__ = "leave_transactions"
    __table_args__ = (
        sa.Index("ix_leave_tx_employee_created", "employee_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    balance_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_balances.id", ondelete="CASCADE"),
        nullable=False,
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_policies.id"), nullable=False
    )
    transaction_type: Mapped[LeaveTransactionType] = mapped_column(
        sa.Enum(LeaveTransactionType, name="leave_transaction_type", create_type=False),
        nullable=False,
    )
    field: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(DAYS, nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(DAYS, nullable=False)
    reference_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("app_users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_dates"),
        sa.Index("ix_leave_requests_org_status", "organization_id", "status"),
        sa.Index("ix_leave_requests_employee", "employee_id", "start_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_policies.id"), nullable=False
    )
    # Policy code at submission time; later renames do not rewrite history
    leave_type: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(DAYS, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", create_type=False),
        server_default="pending",
        default=LeaveStatus.pending,
    )
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("app_users.id", ondelete="SET NULL")
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    review_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
