"""Common module: shared utilities for orghr."""

from orghr.common.audit import AuditTrail, create_audit_entry
from orghr.common.constants import (
    DEFAULT_PAGE_SIZE,
    LEDGER_DELTA_FIELDS,
    MAX_PAGE_SIZE,
    AccrualMethod,
    CarryForwardType,
    CompOffSource,
    EmployeeStatus,
    LeaveStatus,
    LeaveTransactionType,
    NotificationType,
    TimeEntryType,
    UserRole,
)
from orghr.common.exceptions import (
    AlreadyAppliedException,
    AppException,
    ConflictError,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from orghr.common.pagination import (
    PaginationMeta,
    PaginationParams,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "AccrualMethod",
    "CarryForwardType",
    "CompOffSource",
    "EmployeeStatus",
    "LeaveStatus",
    "LeaveTransactionType",
    "NotificationType",
    "TimeEntryType",
    "UserRole",
    "LEDGER_DELTA_FIELDS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AlreadyAppliedException",
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InsufficientBalanceException",
    "InvalidTransitionException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginationMeta",
    "PaginationParams",
]
