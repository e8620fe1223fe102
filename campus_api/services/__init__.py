from .approval_service import ApprovalService
from .notification_service import NotificationService
from .reminder_service import EventReminderService, SentReminderCache
from .reservation_service import ReservationCleanupService

__all__ = [
    "ApprovalService",
    "NotificationService",
    "EventReminderService",
    "SentReminderCache",
    "ReservationCleanupService",
]
