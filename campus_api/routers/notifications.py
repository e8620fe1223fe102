from fastapi import APIRouter, Depends, Query, BackgroundTasks
from sqlalchemy.orm import Session
from typing import Dict, Any
from ..database import get_db
from ..services.notification_service import NotificationService
from ..dependencies.permissions import get_current_user, require_admin
from ..utils.router_helpers import (
    handle_service_errors,
    RouterResponse,
)
from ..models.user import User
from ..utils.background_tasks import (
    trigger_event_reminders,
    trigger_reservation_cleanup,
    scheduler,
)
from ..schemas.common import PaginationParams
from ..schemas.notification import MarkAllReadData, UnreadCountData

router = APIRouter(tags=["notifications"])


@router.get("/", response_model=Dict[str, Any])
@handle_service_errors
async def get_user_notifications(
    unread_only: bool = Query(False, description="Only unread notifications"),
    pagination: PaginationParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get user's notifications, newest first, with event context"""
    notification_service = NotificationService(db)

    result = notification_service.get_user_notifications(
        user_id=current_user.id, pagination=pagination, unread_only=unread_only
    )

    return RouterResponse.success(data=result)


@router.get("/unread-count", response_model=Dict[str, Any])
@handle_service_errors
async def get_unread_count(
    by_type: bool = Query(False, description="Group count by notification type"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get count of unread notifications"""
    notification_service = NotificationService(db)

    data = UnreadCountData(
        unread_count=notification_service.get_unread_count(current_user.id),
        by_type=(
            notification_service.get_unread_count_by_type(current_user.id)
            if by_type
            else {}
        ),
    )
    return RouterResponse.success(data=data)


@router.put("/mark-all-read", response_model=Dict[str, Any])
@handle_service_errors
async def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    updated_count = NotificationService(db).mark_all_as_read(current_user.id)

    return RouterResponse.success(
        data=MarkAllReadData(updated_count=updated_count),
        message=f"{updated_count} notifications marked as read",
    )


# SYSTEM ENDPOINTS FOR BACKGROUND TASKS
@router.post("/system/trigger/event-reminders", response_model=Dict[str, Any])
async def trigger_event_reminders_endpoint(
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
):
    """Manually trigger an event reminder pass (system use)"""
    background_tasks.add_task(trigger_event_reminders)

    return RouterResponse.success(message="Event reminders triggered")


@router.post("/system/trigger/reservation-cleanup", response_model=Dict[str, Any])
async def trigger_reservation_cleanup_endpoint(
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
):
    """Manually trigger the study space reservation cleanup (system use)"""
    background_tasks.add_task(trigger_reservation_cleanup)

    return RouterResponse.success(message="Reservation cleanup triggered")


@router.get("/system/scheduler-status", response_model=Dict[str, Any])
async def get_scheduler_status(admin: User = Depends(require_admin)):
    """Get background task scheduler status"""
    return RouterResponse.success(data={"scheduler_status": scheduler.get_status()})


@router.get("/{notification_id}", response_model=Dict[str, Any])
@handle_service_errors
async def get_notification_details(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = NotificationService(db).get_notification_by_id(
        notification_id=notification_id, user_id=current_user.id
    )

    return RouterResponse.success(data=notification)


@router.put("/{notification_id}/read", response_model=Dict[str, Any])
@handle_service_errors
async def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark notification as read"""
    notification = NotificationService(db).mark_as_read(
        notification_id=notification_id, user_id=current_user.id
    )

    return RouterResponse.success(
        data=notification, message="Notification marked as read"
    )
