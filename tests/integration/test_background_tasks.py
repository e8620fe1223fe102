"""
Tests for BackgroundTaskScheduler: job registration, overlap skipping,
failure isolation and status reporting.
"""

import threading
from unittest.mock import MagicMock

import pytest

from campus_api.utils.background_tasks import (
    EVENT_REMINDERS,
    NOTIFICATION_RECONCILIATION,
    RESERVATION_CLEANUP,
    BackgroundTaskScheduler,
)


@pytest.fixture
def reminder_service():
    service = MagicMock()
    service.check_and_send_reminders.return_value = {"checked": 0}
    return service


@pytest.fixture
def scheduler(session_factory, reminder_service):
    scheduler = BackgroundTaskScheduler(
        session_factory=session_factory,
        reminder_service=reminder_service,
        poll_seconds=1,
    )
    yield scheduler
    scheduler.stop_scheduler()


class TestJobs:
    def test_schedule_registers_three_jobs(self, scheduler):
        scheduler.schedule_jobs()

        status = scheduler.get_status()
        assert status["scheduled_jobs_count"] == 3
        assert {job["job"] for job in status["job_details"]} == {
            "run_event_reminders",
            "run_reservation_cleanup",
            "run_notification_reconciliation",
        }

    def test_overlapping_run_is_skipped(self, scheduler, reminder_service):
        nested_results = []

        def reenter(*args, **kwargs):
            nested_results.append(scheduler.run_event_reminders())
            return {"checked": 0}

        reminder_service.check_and_send_reminders.side_effect = reenter

        assert scheduler.run_event_reminders() is True
        assert nested_results == [False]
        assert reminder_service.check_and_send_reminders.call_count == 1
        assert scheduler.job_status[EVENT_REMINDERS]["skipped_runs"] == 1

    def test_failure_recorded_not_raised(self, scheduler, reminder_service):
        reminder_service.check_and_send_reminders.side_effect = RuntimeError("db down")

        assert scheduler.run_event_reminders() is True
        assert scheduler.job_status[EVENT_REMINDERS]["last_status"] == "Error: db down"
        # the lock was released
        reminder_service.check_and_send_reminders.side_effect = None
        scheduler.run_event_reminders()
        assert scheduler.job_status[EVENT_REMINDERS]["last_status"] == "Success"

    def test_cleanup_and_reconcile_use_database(self, scheduler, campus):
        scheduler.run_reservation_cleanup()
        scheduler.run_notification_reconciliation()

        assert scheduler.job_status[RESERVATION_CLEANUP]["last_result"] == 0
        assert scheduler.job_status[NOTIFICATION_RECONCILIATION]["last_status"] == "Success"

    def test_immediate_check_reports_status(self, scheduler, reminder_service, campus):
        status = scheduler.run_immediate_check()

        reminder_service.check_and_send_reminders.assert_called_once()
        assert status["jobs"][EVENT_REMINDERS]["last_status"] == "Success"
        assert status["jobs"][RESERVATION_CLEANUP]["last_run_time"] is not None
        assert status["jobs"][EVENT_REMINDERS]["in_progress"] is False


class TestLifecycle:
    def test_start_runs_catch_up_then_stops(self, scheduler, reminder_service, campus):
        ran = threading.Event()
        reminder_service.check_and_send_reminders.side_effect = lambda: ran.set()

        scheduler.start_scheduler()
        assert scheduler.running is True
        assert ran.wait(timeout=5)

        scheduler.stop_scheduler()
        assert scheduler.running is False
        assert scheduler.get_status()["scheduled_jobs_count"] == 0
