from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class NotificationPublic(BaseModel):
    id: str
    title: str
    message: str
    type: str
    entity_id: str | None = None
    read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationPublic]
    unread: int


class MarkReadResponse(BaseModel):
    ok: bool = True
    updated: int = 1
