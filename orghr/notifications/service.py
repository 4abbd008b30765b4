"""Notification service: CRUD operations and cross-module helper dispatchers."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.auth.models import AppUser
from orghr.common.constants import LeaveStatus, NotificationType, UserRole
from orghr.common.exceptions import NotFoundException
from orghr.common.pagination import PaginationMeta, PaginationParams
from orghr.notifications.models import Notification
from orghr.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

logger = logging.getLogger(__name__)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
        type: NotificationType = NotificationType.general,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            organization_id=organization_id,
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        user_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for a user, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == user_id)
            .order_by(Notification.created_at.desc())
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        # Total count (with filters applied)
        count_q = query.with_only_columns(func.count()).order_by(None)
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        meta = PaginationMeta.build(pagination.page, pagination.page_size, total)

        # Unread count for the badge, ignoring filters
        unread = await NotificationService.get_unread_count(db, user_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(**meta.model_dump(), unread=unread),
        )

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Other users' ids are a 404."""
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == user_id,
            )
        )
        notification = result.scalars().first()
        if notification is None:
            raise NotFoundException("Notification", notification_id)

        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for a user."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Recipient resolution ────────────────────────────────────────────


async def _users_for_employee(
    db: AsyncSession,
    employee_id: uuid.UUID,
) -> Sequence[uuid.UUID]:
    result = await db.execute(
        select(AppUser.id).where(
            AppUser.employee_id == employee_id,
            AppUser.is_active.is_(True),
        )
    )
    return result.scalars().all()


async def _org_admins(
    db: AsyncSession,
    organization_id: uuid.UUID,
) -> Sequence[uuid.UUID]:
    result = await db.execute(
        select(AppUser.id).where(
            AppUser.organization_id == organization_id,
            AppUser.role == UserRole.org_admin,
            AppUser.is_active.is_(True),
        )
    )
    return result.scalars().all()


async def _fan_out(
    db: AsyncSession,
    recipients: Sequence[uuid.UUID],
    **fields,
) -> list[Notification]:
    sent = [
        await NotificationService.create_notification(db, recipient_id=rid, **fields)
        for rid in recipients
    ]
    if not sent:
        logger.debug("No recipients for %s notification", fields.get("type"))
    return sent


# ── Cross-module helper dispatchers ─────────────────────────────────
# Called by the leave / comp-off services after each mutation.
# They take ORM objects, not response schemas.


async def notify_leave_request(
    db: AsyncSession,
    leave_request,  # orghr.leave.models.LeaveRequest
    employee_name: str,
) -> list[Notification]:
    """Tell the organization's admins that a request needs review."""
    recipients = await _org_admins(db, leave_request.organization_id)
    return await _fan_out(
        db,
        recipients,
        organization_id=leave_request.organization_id,
        type=NotificationType.leave_request,
        title="New Leave Request",
        message=(
            f"{employee_name} requested {leave_request.leave_type} from "
            f"{leave_request.start_date} to {leave_request.end_date} "
            f"({leave_request.total_days} day(s))."
        ),
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


_DECISION_TYPES: dict[LeaveStatus, tuple[NotificationType, str]] = {
    LeaveStatus.approved: (NotificationType.leave_approved, "Leave Request Approved"),
    LeaveStatus.rejected: (NotificationType.leave_rejected, "Leave Request Rejected"),
    LeaveStatus.cancelled: (NotificationType.leave_cancelled, "Leave Request Cancelled"),
}


async def notify_leave_decision(
    db: AsyncSession,
    leave_request,  # orghr.leave.models.LeaveRequest
) -> list[Notification]:
    """Tell the employee their request moved to its current status."""
    ntype, title = _DECISION_TYPES[leave_request.status]
    message = (
        f"Your {leave_request.leave_type} request from {leave_request.start_date} "
        f"to {leave_request.end_date} is now {leave_request.status.value}."
    )
    if leave_request.review_notes:
        message += f" Notes: {leave_request.review_notes}"

    recipients = await _users_for_employee(db, leave_request.employee_id)
    return await _fan_out(
        db,
        recipients,
        organization_id=leave_request.organization_id,
        type=ntype,
        title=title,
        message=message,
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_comp_off(
    db: AsyncSession,
    grant,  # orghr.comp_off.models.CompOffGrant
) -> list[Notification]:
    """Tell the employee a grant was recorded or credited."""
    if grant.is_applied:
        ntype, title = NotificationType.comp_off_applied, "Comp-Off Credited"
        message = (
            f"{grant.days_granted} day(s) of comp-off for {grant.work_date} "
            f"were added to your leave balance."
        )
    else:
        ntype, title = NotificationType.comp_off_granted, "Comp-Off Granted"
        message = (
            f"You were granted {grant.days_granted} day(s) of comp-off for "
            f"working on {grant.work_date}."
        )

    recipients = await _users_for_employee(db, grant.employee_id)
    return await _fan_out(
        db,
        recipients,
        organization_id=grant.organization_id,
        type=ntype,
        title=title,
        message=message,
        action_url=f"/comp-off/{grant.id}",
        entity_type="comp_off_grant",
        entity_id=grant.id,
    )


async def notify_balance_adjusted(
    db: AsyncSession,
    balance,  # orghr.leave.models.LeaveBalance
    amount: Decimal,
    policy_name: str,
    reason: str,
) -> list[Notification]:
    """Tell the employee an admin corrected one of their balances."""
    direction = "credited" if amount >= 0 else "debited"
    recipients = await _users_for_employee(db, balance.employee_id)
    return await _fan_out(
        db,
        recipients,
        organization_id=balance.organization_id,
        type=NotificationType.balance_adjusted,
        title="Leave Balance Adjusted",
        message=f"{abs(amount)} day(s) of {policy_name} were {direction}. Reason: {reason}",
        entity_type="leave_balance",
        entity_id=balance.id,
    )
