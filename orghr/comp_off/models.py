"""Comp-off ORM model: CompOffGrant."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from orghr.common.constants import CompOffSource
from orghr.database import Base
from orghr.leave.models import DAYS


class CompOffGrant(Base):
    """Compensatory time earned by an employee; credited to leave once applied."""

    __tablename__ = "comp_off_grants"
    __table_args__ = (
        sa.CheckConstraint("hours_worked >= 0", name="ck_comp_off_hours"),
        sa.CheckConstraint("days_granted >= 0", name="ck_comp_off_days"),
        sa.Index("ix_comp_off_org_applied", "organization_id", "is_applied"),
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
        index=True,
    )
    work_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False, default=Decimal("8"),
    )
    days_granted: Mapped[Decimal] = mapped_column(DAYS, nullable=False)
    source: Mapped[CompOffSource] = mapped_column(
        sa.Enum(CompOffSource, name="comp_off_source", create_type=False),
        server_default="manual",
        default=CompOffSource.manual,
    )
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    granted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("app_users.id", ondelete="SET NULL")
    )
    is_applied: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.false(), default=False,
    )
    applied_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    # Leave year the grant was credited to
    balance_year: Mapped[Optional[int]] = mapped_column(sa.Integer)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
