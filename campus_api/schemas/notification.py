from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime
from ..models.enums import EventStatus, NotificationType
from .common import PaginationInfo


class RevisionExchange(BaseModel):
    """The revision request and the creator's answer for one stage"""

    stage: str
    message: str
    response: Optional[str] = None


class NotificationEventContext(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    start_date: datetime
    status: EventStatus
    community_id: Optional[int] = None
    community_name: Optional[str] = None
    revision: Optional[RevisionExchange] = None


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    event_id: Optional[int]
    type: NotificationType
    message: str
    read: bool
    created_at: datetime
    read_at: Optional[datetime] = None
    event: Optional[NotificationEventContext] = None

    class Config:
        from_attributes = True


class NotificationListData(BaseModel):
    notifications: List[NotificationResponse]
    pagination: PaginationInfo


class UnreadCountData(BaseModel):
    unread_count: int
    by_type: Dict[str, int] = {}


class MarkAllReadData(BaseModel):
    updated_count: int
