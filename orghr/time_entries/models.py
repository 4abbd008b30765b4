"""Time-entry ORM model: TimeEntry."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from orghr.common.constants import TimeEntryType
from orghr.database import Base


class TimeEntry(Base):
    """A raw check-in or check-out event. Written once, never edited."""

    __tablename__ = "time_entries"
    __table_args__ = (
        sa.Index("ix_time_entries_employee_date", "employee_id", "date"),
        sa.Index("ix_time_entries_org_date", "organization_id", "date"),
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
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)
    entry_type: Mapped[TimeEntryType] = mapped_column(
        sa.Enum(TimeEntryType, name="time_entry_type", create_type=False),
        nullable=False,
    )
    entry_time: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
