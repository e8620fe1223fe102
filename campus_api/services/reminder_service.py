from sqlalchemy.orm import joinedload
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Dict, Optional, Set, Tuple
from datetime import datetime, timedelta
import logging
import threading

from ..database import SessionLocal, session_scope
from ..models.event import Event
from ..models.enums import EventStatus, NotificationType
from ..utils.constants import AppConstants, SchedulerSettings
from ..utils.date_helpers import DateHelpers
from .approval_workflow import Audience
from .notification_service import NotificationService, message_context

logger = logging.getLogger(__name__)

REMINDER_MESSAGES = {
    NotificationType.EVENT_REMINDER_1_DAY: 'Reminder: "{title}" starts in 1 day on {date}',
    NotificationType.EVENT_REMINDER_1_HOUR: 'Reminder: "{title}" starts in 1 hour at {time}',
}

REMINDER_WORKERS = 4


class SentReminderCache:
    """
    In-memory record of reminders already sent, keyed by (event_id, kind).

    Saves a dedup query on every tick for events that stay inside a window
    across several runs. Entries expire after ttl_minutes and the oldest are
    dropped beyond max_entries. The notification table remains the source of
    truth, so losing this cache only costs extra queries.
    """

    def __init__(
        self,
        ttl_minutes: int = AppConstants.REMINDER_CACHE_TTL_MINUTES,
        max_entries: int = AppConstants.REMINDER_CACHE_MAX_ENTRIES,
    ):
        self.ttl = timedelta(minutes=ttl_minutes)
        self.max_entries = max_entries
        self._entries: Dict[Tuple[int, NotificationType], datetime] = {}
        self._lock = threading.Lock()

    def was_sent(
        self, event_id: int, kind: NotificationType, now: Optional[datetime] = None
    ) -> bool:
        now = now or DateHelpers.utc_now()
        with self._lock:
            sent_at = self._entries.get((event_id, kind))
            if sent_at is None:
                return False
            if now - sent_at > self.ttl:
                del self._entries[(event_id, kind)]
                return False
            return True

    def mark_sent(
        self, event_id: int, kind: NotificationType, now: Optional[datetime] = None
    ) -> None:
        now = now or DateHelpers.utc_now()
        with self._lock:
            self._entries.pop((event_id, kind), None)
            self._entries[(event_id, kind)] = now
            self._evict(now)

    def _evict(self, now: datetime) -> None:
        expired = [key for key, sent_at in self._entries.items() if now - sent_at > self.ttl]
        for key in expired:
            del self._entries[key]

        # dicts keep insertion order, so the first keys are the oldest
        while len(self._entries) > self.max_entries:
            del self._entries[next(iter(self._entries))]

    def __len__(self) -> int:
        return len(self._entries)


class EventReminderService:
    """Sends 1-day and 1-hour reminders to everyone registered for or saving an approved event"""

    def __init__(
        self,
        session_factory=SessionLocal,
        cache: Optional[SentReminderCache] = None,
        event_timeout_seconds: float = SchedulerSettings.REMINDER_EVENT_TIMEOUT_SECONDS,
    ):
        self.session_factory = session_factory
        self.cache = cache or SentReminderCache()
        self.event_timeout_seconds = event_timeout_seconds
        # events whose worker is still running, possibly from an earlier pass
        self._in_flight: Set[int] = set()
        self._in_flight_lock = threading.Lock()

    @staticmethod
    def reminder_kind(hours_until_start: float) -> Optional[NotificationType]:
        if DateHelpers.is_within_window(
            hours_until_start, *AppConstants.REMINDER_1_DAY_WINDOW
        ):
            return NotificationType.EVENT_REMINDER_1_DAY
        if DateHelpers.is_within_window(
            hours_until_start, *AppConstants.REMINDER_1_HOUR_WINDOW
        ):
            return NotificationType.EVENT_REMINDER_1_HOUR
        return None

    def check_and_send_reminders(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """One reminder pass over approved events starting within the lookahead"""

        now = DateHelpers.to_naive_utc(now) if now else DateHelpers.utc_now()
        horizon = now + timedelta(hours=AppConstants.REMINDER_LOOKAHEAD_HOURS)

        with session_scope(self.session_factory) as db:
            event_ids = [
                event_id
                for (event_id,) in db.query(Event.id)
                .filter(
                    Event.status == EventStatus.APPROVED,
                    Event.start_date >= now,
                    Event.start_date <= horizon,
                )
                .order_by(Event.start_date.asc())
                .all()
            ]

        summary = {
            "checked": len(event_ids),
            "sent_1_day": 0,
            "sent_1_hour": 0,
            "failed": 0,
            "skipped": 0,
        }
        if not event_ids:
            logger.info("✅ Event reminder check completed: no upcoming events")
            return summary

        executor = ThreadPoolExecutor(
            max_workers=REMINDER_WORKERS, thread_name_prefix="event-reminder"
        )
        try:
            for event_id in event_ids:
                if not self._claim(event_id):
                    summary["skipped"] += 1
                    logger.warning(
                        f"⏭️ Reminder for event {event_id} still running from an "
                        f"earlier pass, skipping"
                    )
                    continue

                future = executor.submit(self._process_claimed, event_id, now)
                try:
                    kind = future.result(timeout=self.event_timeout_seconds)
                except FutureTimeoutError:
                    summary["failed"] += 1
                    logger.error(
                        f"❌ Reminder for event {event_id} timed out after "
                        f"{self.event_timeout_seconds}s; its worker keeps running "
                        f"and the event is skipped until it finishes"
                    )
                    continue
                except Exception as e:
                    summary["failed"] += 1
                    logger.error(
                        f"❌ Reminder for event {event_id} failed: {e}", exc_info=True
                    )
                    continue

                if kind == NotificationType.EVENT_REMINDER_1_DAY:
                    summary["sent_1_day"] += 1
                elif kind == NotificationType.EVENT_REMINDER_1_HOUR:
                    summary["sent_1_hour"] += 1
        finally:
            executor.shutdown(wait=False)

        logger.info(
            f"✅ Event reminder check completed: {summary['sent_1_day']} 1-day, "
            f"{summary['sent_1_hour']} 1-hour, {summary['failed']} failed, "
            f"{summary['skipped']} skipped of {summary['checked']} events"
        )
        return summary

    def _claim(self, event_id: int) -> bool:
        with self._in_flight_lock:
            if event_id in self._in_flight:
                return False
            self._in_flight.add(event_id)
            return True

    def _process_claimed(self, event_id: int, now: datetime) -> Optional[NotificationType]:
        try:
            return self._process_event(event_id, now)
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(event_id)

    def _process_event(self, event_id: int, now: datetime) -> Optional[NotificationType]:
        """Send the reminder due for one event, if any. Returns the kind sent."""

        with session_scope(self.session_factory) as db:
            event = (
                db.query(Event)
                .options(joinedload(Event.community), joinedload(Event.college))
                .filter(Event.id == event_id)
                .first()
            )
            if not event or event.status != EventStatus.APPROVED:
                return None

            kind = self.reminder_kind(DateHelpers.hours_between(now, event.start_date))
            if kind is None or self.cache.was_sent(event.id, kind, now):
                return None

            message = REMINDER_MESSAGES[kind].format(**message_context(event))
            created = NotificationService(db).emit(
                event, kind, Audience.REGISTRANTS_AND_SAVERS, message
            )
            self.cache.mark_sent(event.id, kind, now)

            return kind if created else None
