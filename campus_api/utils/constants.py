import os
from dotenv import load_dotenv

load_dotenv()


class ResponseMessages:
    """Standard API response messages"""

    EVENT_SUBMITTED = "Event submitted for Faculty Leader approval"
    EVENT_APPROVED = "Event approved"
    EVENT_REVISION_REQUESTED = "Event sent back for revision"
    EVENT_REJECTED = "Event rejected"
    EVENT_RESUBMITTED = "Response sent and event resubmitted"
    STATE_CHANGED = "Event state changed, please refresh"


# Application Constants
class AppConstants:
    # Pagination
    DEFAULT_PAGE = 1
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    # Validation Limits
    MAX_REASON_LENGTH = 2000

    # Event reminders: tolerance windows in hours until start
    REMINDER_1_DAY_WINDOW = (23.0, 25.0)
    REMINDER_1_HOUR_WINDOW = (0.9, 1.1)
    REMINDER_LOOKAHEAD_HOURS = 25
    REMINDER_CACHE_TTL_MINUTES = 180
    REMINDER_CACHE_MAX_ENTRIES = 10000

    # Notification reconciliation only revisits recently transitioned events
    RECONCILE_LOOKBACK_DAYS = 7
    # and leaves alone events whose own fan-out may still be running
    RECONCILE_GRACE_MINUTES = 5

    # Retries for transient storage failures
    MAX_STORAGE_ATTEMPTS = 3
    RETRY_WAIT_MIN_SECONDS = 0.1
    RETRY_WAIT_MAX_SECONDS = 2.0


class SchedulerSettings:
    """Background job settings, read from the environment"""

    ENABLED = os.getenv("ENABLE_SCHEDULER", "true").lower() in ("1", "true", "yes")
    REMINDER_INTERVAL_MINUTES = int(os.getenv("REMINDER_INTERVAL_MINUTES", "10"))
    RESERVATION_CLEANUP_AT = os.getenv("RESERVATION_CLEANUP_AT", "00:00")
    RECONCILE_INTERVAL_MINUTES = int(os.getenv("RECONCILE_INTERVAL_MINUTES", "30"))
    REMINDER_EVENT_TIMEOUT_SECONDS = float(
        os.getenv("REMINDER_EVENT_TIMEOUT_SECONDS", "30")
    )
    POLL_SECONDS = int(os.getenv("SCHEDULER_POLL_SECONDS", "30"))


class AppSettings:
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:5173,http://localhost:8081"
        ).split(",")
        if origin.strip()
    ]
