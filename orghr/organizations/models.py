"""Organization ORM models: Organization, Employee.

Every tenant-owned row in the schema points back at ``organizations.id``.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orghr.common.constants import EmployeeStatus
from orghr.database import Base


# ═════════════════════════════════════════════════════════════════════
# Organization
# ═════════════════════════════════════════════════════════════════════


class Organization(Base):
    """A tenant."""

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.true(), default=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # Relationships
    employees: Mapped[list[Employee]] = relationship(back_populates="organization")


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """An employee record owned by one organization."""

    __tablename__ = "employees"
    __table_args__ = (
        sa.UniqueConstraint(
            "organization_id", "employee_code", name="uq_employee_org_code",
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
        index=True,
    )
    employee_code: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    email: Mapped[Optional[str]] = mapped_column(sa.String(255))
    designation: Mapped[Optional[str]] = mapped_column(sa.String(150))
    status: Mapped[EmployeeStatus] = mapped_column(
        sa.Enum(EmployeeStatus, name="employee_status", create_type=False),
        server_default="active",
        default=EmployeeStatus.active,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="employees")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    @property
    def is_active(self) -> bool:
        return self.status != EmployeeStatus.exited
