from .date_helpers import DateHelpers
from .constants import AppConstants, AppSettings, ResponseMessages, SchedulerSettings
from .validation import ValidationHelpers

__all__ = [
    "DateHelpers",
    "AppConstants", "AppSettings", "ResponseMessages", "SchedulerSettings",
    "ValidationHelpers",
]
