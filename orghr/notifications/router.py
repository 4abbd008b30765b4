"""Notification endpoints: list, mark read, unread count."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.auth.dependencies import get_current_user
from orghr.auth.models import AppUser
from orghr.common.constants import NotificationType
from orghr.common.pagination import PaginationParams
from orghr.database import get_db
from orghr.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
)
from orghr.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET /: list current user's notifications ───────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    type: Optional[NotificationType] = Query(
        default=None, alias="type", description="Filter by notification type"
    ),
    pagination: PaginationParams = Depends(),
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List notifications for the authenticated user (paginated)."""
    return await NotificationService.get_notifications(
        db,
        user_id=user.id,
        pagination=pagination,
        is_read=is_read,
        notification_type=type,
    )


# ── GET /unread-count: badge count ─────────────────────────────────
# Registered before /{notification_id}/read so the literal path wins.

@router.get("/unread-count")
async def unread_count(
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the number of unread notifications (for header badge)."""
    count = await NotificationService.get_unread_count(db, user.id)
    return {"data": {"count": count}}


# ── PUT /read-all: bulk mark all as read ───────────────────────────

@router.put("/read-all")
async def mark_all_read(
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark all unread notifications as read for the authenticated user."""
    count = await NotificationService.mark_all_read(db, user.id)
    return {"message": "All notifications marked as read", "data": {"count": count}}


# ── PUT /{notification_id}/read: mark single as read ───────────────

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single notification as read."""
    notification = await NotificationService.mark_read(db, notification_id, user.id)
    return {
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification),
    }
