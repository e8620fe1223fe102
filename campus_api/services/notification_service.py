from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import OperationalError
from sqlalchemy import and_, func
from typing import Any, Dict, Iterable, List, Optional, Set, Union
from datetime import datetime, timedelta
import logging

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..models.notification import Notification
from ..models.event import Event
from ..models.enums import (
    ApprovalStage,
    NotificationType,
    WORKFLOW_NOTIFICATION_TYPES,
)
from ..schemas.common import PaginationInfo, PaginationParams
from ..schemas.notification import (
    NotificationEventContext,
    NotificationListData,
    NotificationResponse,
    RevisionExchange,
)
from ..utils.constants import AppConstants
from ..utils.date_helpers import DateHelpers
from .approval_workflow import Audience, SideEffect, expected_notice
from . import audience as audiences

logger = logging.getLogger(__name__)


class NotificationServiceError(Exception):
    """Base exception for notification service errors"""

    pass


class NotificationNotFoundError(NotificationServiceError):
    """Notification not found for this user"""

    pass


def message_context(event: Event, text: Optional[str] = None) -> Dict[str, Any]:
    """Values available to notification message templates"""
    community = event.community
    college = event.college or (community.college if community else None)
    return {
        "title": event.title,
        "community": community.name if community else "your community",
        "college": college.name if college else "your college",
        "text": text or "",
        "date": DateHelpers.format_event_date(event.start_date),
        "time": DateHelpers.format_event_time(event.start_date),
    }


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    # FAN-OUT
    def emit(
        self,
        event: Event,
        kind: NotificationType,
        audience: Union[Audience, Iterable[int]],
        message: str,
        stage: Optional[ApprovalStage] = None,
    ) -> List[Notification]:
        """
        Create one notification per resolved recipient, skipping anyone who
        already has one of this kind for this event inside the dedup window.

        Safe to call again for the same occurrence: the dedup check re-runs.
        """
        kind = NotificationType(kind)

        if isinstance(audience, Audience):
            recipients = audiences.resolve(self.db, event, audience)
        else:
            recipients = set(audience)

        if not recipients:
            logger.warning(
                f"⚠️ No recipients for {kind.value} on event {event.id} "
                f"(audience={getattr(audience, 'value', 'explicit')})"
            )
            return []

        created = self._write_batch(
            event.id,
            kind,
            recipients,
            message,
            self._dedup_window_start(event, kind),
            stage,
        )

        if created:
            logger.info(
                f"📧 Sent {kind.value} for event {event.id} to {len(created)} user(s)"
            )
        return created

    def emit_side_effect(
        self, event: Event, side_effect: SideEffect, text: Optional[str] = None
    ) -> List[Notification]:
        return self.emit(
            event,
            side_effect.kind,
            side_effect.audience,
            side_effect.render(message_context(event, text)),
            stage=side_effect.stage,
        )

    def _dedup_window_start(
        self, event: Event, kind: NotificationType
    ) -> Optional[datetime]:
        """Workflow kinds recur once per transition; reminders once per event"""
        if kind in WORKFLOW_NOTIFICATION_TYPES:
            return event.last_transition_at
        return None

    @retry(
        stop=stop_after_attempt(AppConstants.MAX_STORAGE_ATTEMPTS),
        wait=wait_exponential(
            multiplier=AppConstants.RETRY_WAIT_MIN_SECONDS,
            min=AppConstants.RETRY_WAIT_MIN_SECONDS,
            max=AppConstants.RETRY_WAIT_MAX_SECONDS,
        ),
        retry=retry_if_exception_type(OperationalError),
        reraise=True,
    )
    def _write_batch(
        self,
        event_id: int,
        kind: NotificationType,
        recipients: Set[int],
        message: str,
        window_start: Optional[datetime],
        stage: Optional[ApprovalStage] = None,
    ) -> List[Notification]:
        try:
            already_notified = self._existing_recipients(
                event_id, kind, recipients, window_start
            )
            to_notify = sorted(recipients - already_notified)
            if not to_notify:
                return []

            notifications = [
                Notification(
                    user_id=user_id,
                    event_id=event_id,
                    type=kind,
                    message=message,
                    stage=stage,
                    read=False,
                )
                for user_id in to_notify
            ]
            self.db.add_all(notifications)
            self.db.commit()
            return notifications
        except OperationalError as e:
            self.db.rollback()
            logger.warning(f"Transient failure writing {kind.value} batch: {e}")
            raise

    def _existing_recipients(
        self,
        event_id: int,
        kind: NotificationType,
        recipients: Set[int],
        window_start: Optional[datetime],
    ) -> Set[int]:
        query = self.db.query(Notification.user_id).filter(
            Notification.event_id == event_id,
            Notification.type == kind,
            Notification.user_id.in_(recipients),
        )
        if window_start is not None:
            query = query.filter(Notification.created_at >= window_start)
        return {user_id for (user_id,) in query.all()}

    # CRASH RECOVERY
    def reconcile_missing_notifications(
        self,
        lookback_days: int = AppConstants.RECONCILE_LOOKBACK_DAYS,
        grace_minutes: int = AppConstants.RECONCILE_GRACE_MINUTES,
        now: Optional[datetime] = None,
    ) -> Dict[str, int]:
        """
        Re-derive the notice each recently transitioned event should carry and
        emit it. Events whose notice already exists are left untouched by the
        dedup check, so only notifications lost between the state commit and
        the fan-out get written.

        Events that transitioned within the last grace_minutes are skipped:
        their own request may still be fanning out, and two writers checking
        the dedup window at once would both insert.
        """
        now = DateHelpers.to_naive_utc(now) if now else DateHelpers.utc_now()
        since = now - timedelta(days=lookback_days)
        settled_before = now - timedelta(minutes=grace_minutes)
        events = (
            self.db.query(Event)
            .options(joinedload(Event.community), joinedload(Event.college))
            .filter(
                Event.last_transition_at >= since,
                Event.last_transition_at <= settled_before,
            )
            .all()
        )

        summary = {"checked": len(events), "repaired": 0, "failed": 0}
        for event in events:
            notice = expected_notice(event)
            if notice is None:
                continue
            side_effect, text = notice
            try:
                if self.emit_side_effect(event, side_effect, text):
                    summary["repaired"] += 1
            except Exception as e:
                self.db.rollback()
                summary["failed"] += 1
                logger.error(
                    f"❌ Reconciliation failed for event {event.id}: {e}",
                    exc_info=True,
                )

        logger.info(
            f"✅ Notification reconciliation completed: {summary['repaired']} repaired "
            f"of {summary['checked']} checked"
        )
        return summary

    # READ SIDE
    def get_user_notifications(
        self,
        user_id: int,
        pagination: PaginationParams,
        unread_only: bool = False,
    ) -> NotificationListData:
        """Newest-first page of the user's notifications with event context"""

        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read == False)

        total = query.count()

        notifications = (
            query.options(
                joinedload(Notification.event).joinedload(Event.community)
            )
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
            .all()
        )

        total_pages = (total + pagination.page_size - 1) // pagination.page_size
        return NotificationListData(
            notifications=[self._to_response(n) for n in notifications],
            pagination=PaginationInfo(
                current_page=pagination.page,
                page_size=pagination.page_size,
                total_items=total,
                total_pages=total_pages,
                has_next=pagination.page < total_pages,
                has_previous=pagination.page > 1,
            ),
        )

    def get_notification_by_id(
        self, notification_id: int, user_id: int
    ) -> NotificationResponse:
        return self._to_response(self._get_owned(notification_id, user_id))

    def get_unread_count(self, user_id: int) -> int:
        return (
            self.db.query(Notification)
            .filter(and_(Notification.user_id == user_id, Notification.read == False))
            .count()
        )

    def get_unread_count_by_type(self, user_id: int) -> Dict[str, int]:
        type_counts = (
            self.db.query(Notification.type, func.count(Notification.id))
            .filter(and_(Notification.user_id == user_id, Notification.read == False))
            .group_by(Notification.type)
            .all()
        )
        return {kind.value: count for kind, count in type_counts}

    def mark_as_read(self, notification_id: int, user_id: int) -> NotificationResponse:
        notification = self._get_owned(notification_id, user_id)

        if not notification.read:
            notification.read = True
            notification.read_at = DateHelpers.utc_now()
            self.db.commit()
            self.db.refresh(notification)

        return self._to_response(notification)

    def mark_all_as_read(self, user_id: int) -> int:
        updated_count = (
            self.db.query(Notification)
            .filter(and_(Notification.user_id == user_id, Notification.read == False))
            .update(
                {"read": True, "read_at": DateHelpers.utc_now()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated_count

    def _get_owned(self, notification_id: int, user_id: int) -> Notification:
        notification = (
            self.db.query(Notification)
            .filter(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
            .first()
        )
        if not notification:
            raise NotificationNotFoundError("Notification not found")
        return notification

    def _to_response(self, notification: Notification) -> NotificationResponse:
        event = notification.event
        event_context = None
        if event is not None:
            community = event.community
            event_context = NotificationEventContext(
                id=event.id,
                title=event.title,
                description=event.description,
                start_date=event.start_date,
                status=event.status,
                community_id=community.id if community else None,
                community_name=community.name if community else None,
                revision=self._revision_exchange(notification),
            )

        return NotificationResponse(
            id=notification.id,
            user_id=notification.user_id,
            event_id=notification.event_id,
            type=notification.type,
            message=notification.message,
            read=notification.read,
            created_at=notification.created_at,
            read_at=notification.read_at,
            event=event_context,
        )

    @staticmethod
    def _revision_exchange(notification: Notification) -> Optional[RevisionExchange]:
        """The revision request/response pair of the stage the notice was sent for"""
        event = notification.event
        if notification.stage == ApprovalStage.DEAN_OF_FACULTY:
            message = event.dean_of_faculty_revision_message
            response = event.faculty_leader_revision_response
        elif notification.stage == ApprovalStage.DEANSHIP:
            message = event.deanship_revision_message
            response = event.dean_of_faculty_revision_response
        else:
            return None

        if not message:
            return None
        return RevisionExchange(
            stage=ApprovalStage(notification.stage).value,
            message=message,
            response=response,
        )
