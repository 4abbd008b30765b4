"""Notification Pydantic schemas for request / response validation."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from orghr.common.constants import NotificationType
from orghr.common.pagination import PaginationMeta


# ── Responses ───────────────────────────────────────────────────────

class NotificationResponse(BaseModel):
    """Single notification in API responses."""

    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    action_url: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListMeta(PaginationMeta):
    """Extends standard pagination meta with unread count."""

    unread: int


class NotificationListResponse(BaseModel):
    """Paginated list of notifications with unread count in meta."""

    data: list[NotificationResponse]
    meta: NotificationListMeta
