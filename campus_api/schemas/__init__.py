from .common import PaginationInfo, PaginationParams
from .approvals import (
    EventRequestCreate,
    ApprovalActionRequest,
    RevisionRequest,
    RejectionRequest,
    RevisionResponseRequest,
    StageApproval,
    WorkflowResponse,
    PendingApprovalItem,
)
from .notification import (
    RevisionExchange,
    NotificationEventContext,
    NotificationResponse,
    NotificationListData,
    UnreadCountData,
    MarkAllReadData,
)

__all__ = [
    # Common
    "PaginationInfo",
    "PaginationParams",
    # Approval workflow
    "EventRequestCreate",
    "ApprovalActionRequest",
    "RevisionRequest",
    "RejectionRequest",
    "RevisionResponseRequest",
    "StageApproval",
    "WorkflowResponse",
    "PendingApprovalItem",
    # Notifications
    "RevisionExchange",
    "NotificationEventContext",
    "NotificationResponse",
    "NotificationListData",
    "UnreadCountData",
    "MarkAllReadData",
]
