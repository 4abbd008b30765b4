"""Enums and constants for orghr: matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Organization / Employees ────────────────────────────────────────

class EmployeeStatus(str, enum.Enum):
    active = "active"
    on_notice = "on_notice"
    exited = "exited"


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    org_admin = "org_admin"
    super_admin = "super_admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class AccrualMethod(str, enum.Enum):
    monthly = "monthly"
    yearly = "yearly"
    none = "none"


class CarryForwardType(str, enum.Enum):
    none = "none"
    limited = "limited"
    unlimited = "unlimited"


class LeaveTransactionType(str, enum.Enum):
    accrual = "accrual"
    request = "request"
    cancellation = "cancellation"
    adjustment = "adjustment"
    comp_off = "comp_off"
    carry_forward = "carry_forward"
    lapse = "lapse"


# Balance components that may be moved by a signed delta.
# opening_balance is written once, when the row is created.
LEDGER_DELTA_FIELDS: frozenset[str] = frozenset({"accrued", "used", "adjustment"})


# ── Comp-off ────────────────────────────────────────────────────────

class CompOffSource(str, enum.Enum):
    overtime = "overtime"
    holiday_work = "holiday_work"
    manual = "manual"


# ── Time entries ────────────────────────────────────────────────────

class TimeEntryType(str, enum.Enum):
    check_in = "check_in"
    check_out = "check_out"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    leave_request = "leave_request"
    leave_approved = "leave_approved"
    leave_rejected = "leave_rejected"
    leave_cancelled = "leave_cancelled"
    comp_off_granted = "comp_off_granted"
    comp_off_applied = "comp_off_applied"
    balance_adjusted = "balance_adjusted"
    general = "general"


# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
