import schedule
import logging
import threading
from typing import Any, Callable, Dict, Optional
from ..database import SessionLocal, session_scope
from ..services.notification_service import NotificationService
from ..services.reminder_service import EventReminderService
from ..services.reservation_service import ReservationCleanupService
from .constants import SchedulerSettings
from .date_helpers import DateHelpers

logger = logging.getLogger(__name__)

EVENT_REMINDERS = "event_reminders"
RESERVATION_CLEANUP = "reservation_cleanup"
NOTIFICATION_RECONCILIATION = "notification_reconciliation"


class BackgroundTaskScheduler:
    """
    Periodic jobs on a private schedule.Scheduler driven by a daemon thread.

    Each job holds its own lock; a run that finds the previous one still in
    flight (a slow tick, or a manual trigger racing the loop) is skipped.
    """

    def __init__(
        self,
        session_factory=SessionLocal,
        reminder_service: Optional[EventReminderService] = None,
        reminder_interval_minutes: int = SchedulerSettings.REMINDER_INTERVAL_MINUTES,
        cleanup_at: str = SchedulerSettings.RESERVATION_CLEANUP_AT,
        reconcile_interval_minutes: int = SchedulerSettings.RECONCILE_INTERVAL_MINUTES,
        poll_seconds: int = SchedulerSettings.POLL_SECONDS,
    ):
        self.session_factory = session_factory
        self.reminder_service = reminder_service or EventReminderService(
            session_factory
        )
        self.reminder_interval_minutes = reminder_interval_minutes
        self.cleanup_at = cleanup_at
        self.reconcile_interval_minutes = reconcile_interval_minutes
        self.poll_seconds = poll_seconds

        self.running = False
        self._jobs = schedule.Scheduler()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._locks = {
            name: threading.Lock()
            for name in (EVENT_REMINDERS, RESERVATION_CLEANUP, NOTIFICATION_RECONCILIATION)
        }
        self.job_status: Dict[str, Dict[str, Any]] = {
            name: {
                "last_run_time": None,
                "last_status": "Not started",
                "last_result": None,
                "skipped_runs": 0,
            }
            for name in self._locks
        }

    def _run_job(self, name: str, job: Callable[[], Any]) -> bool:
        """Run job unless a previous run of it is still in flight"""
        lock = self._locks[name]
        status = self.job_status[name]

        if not lock.acquire(blocking=False):
            status["skipped_runs"] += 1
            logger.warning(f"⏭️ Skipping {name}: previous run still in progress")
            return False

        try:
            status["last_run_time"] = DateHelpers.utc_now()
            status["last_result"] = job()
            status["last_status"] = "Success"
        except Exception as e:
            status["last_status"] = f"Error: {str(e)}"
            logger.error(f"❌ Background job {name} failed: {str(e)}", exc_info=True)
        finally:
            lock.release()
        return True

    def run_event_reminders(self) -> bool:
        return self._run_job(
            EVENT_REMINDERS, self.reminder_service.check_and_send_reminders
        )

    def run_reservation_cleanup(self) -> bool:
        return self._run_job(RESERVATION_CLEANUP, self._complete_past_reservations)

    def run_notification_reconciliation(self) -> bool:
        return self._run_job(NOTIFICATION_RECONCILIATION, self._reconcile_notifications)

    def _complete_past_reservations(self) -> int:
        with session_scope(self.session_factory) as db:
            return ReservationCleanupService(db).complete_past_reservations()

    def _reconcile_notifications(self) -> Dict[str, int]:
        with session_scope(self.session_factory) as db:
            return NotificationService(db).reconcile_missing_notifications()

    def schedule_jobs(self):
        self._jobs.clear()
        self._jobs.every(self.reminder_interval_minutes).minutes.do(
            self.run_event_reminders
        )
        self._jobs.every().day.at(self.cleanup_at).do(self.run_reservation_cleanup)
        self._jobs.every(self.reconcile_interval_minutes).minutes.do(
            self.run_notification_reconciliation
        )

        logger.info(
            f"📅 Event reminders every {self.reminder_interval_minutes} min, "
            f"reservation cleanup daily at {self.cleanup_at}, "
            f"notification reconciliation every {self.reconcile_interval_minutes} min"
        )

    def start_scheduler(self):
        """Schedule the jobs and start the polling thread"""
        if self.running:
            return

        self.running = True
        self._stop_event.clear()
        self.schedule_jobs()

        self._thread = threading.Thread(
            target=self._run_loop, name="background-tasks", daemon=True
        )
        self._thread.start()

    def _run_loop(self):
        logger.info("🚀 Starting background task scheduler...")

        # Catch up on anything missed while the process was down
        self.run_event_reminders()
        self.run_reservation_cleanup()

        while not self._stop_event.is_set():
            try:
                self._jobs.run_pending()
            except Exception as e:
                logger.error(f"Scheduler error: {str(e)}", exc_info=True)
            self._stop_event.wait(self.poll_seconds)

    def stop_scheduler(self):
        self.running = False
        self._stop_event.set()
        self._jobs.clear()
        logger.info("⏹️ Background task scheduler stopped")

    def run_immediate_check(self) -> Dict[str, Any]:
        """Run reminders and cleanup now, on the calling thread"""

        logger.info("🔔 Running immediate background check...")
        self.run_event_reminders()
        self.run_reservation_cleanup()
        return self.get_status()

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "scheduled_jobs_count": len(self._jobs.jobs),
            "jobs": {
                name: {
                    **status,
                    "last_run_time": (
                        status["last_run_time"].isoformat()
                        if status["last_run_time"]
                        else None
                    ),
                    "in_progress": self._locks[name].locked(),
                }
                for name, status in self.job_status.items()
            },
            "job_details": [
                {
                    "job": str(job.job_func.__name__),
                    "next_run": job.next_run.isoformat() if job.next_run else None,
                    "interval": str(job.interval),
                    "unit": job.unit,
                }
                for job in self._jobs.jobs
            ],
        }


scheduler = BackgroundTaskScheduler()


def start_background_tasks():
    """Start background tasks (call this when starting the app)"""
    scheduler.start_scheduler()
    logger.info("✅ Background tasks started in separate thread")


def stop_background_tasks():
    scheduler.stop_scheduler()


# Manual triggers, used by the admin endpoints
def trigger_event_reminders():
    if scheduler.run_event_reminders():
        logger.info("✅ Event reminders triggered")


def trigger_reservation_cleanup():
    if scheduler.run_reservation_cleanup():
        logger.info("✅ Reservation cleanup triggered")
