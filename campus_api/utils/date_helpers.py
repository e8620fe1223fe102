from datetime import datetime, timezone


class DateHelpers:
    """All persisted timestamps are naive UTC"""

    @staticmethod
    def utc_now() -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)

    @staticmethod
    def to_naive_utc(value: datetime) -> datetime:
        """Normalize an aware datetime to naive UTC; naive values are assumed UTC"""
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    @staticmethod
    def utc_midnight(value: datetime = None) -> datetime:
        """Start of the UTC day containing value (default: now)"""
        value = DateHelpers.to_naive_utc(value or DateHelpers.utc_now())
        return value.replace(hour=0, minute=0, second=0, microsecond=0)

    @staticmethod
    def hours_between(start: datetime, end: datetime) -> float:
        return (end - start).total_seconds() / 3600

    @staticmethod
    def is_within_window(hours: float, lower: float, upper: float) -> bool:
        return lower <= hours <= upper

    @staticmethod
    def format_event_date(value: datetime) -> str:
        return value.strftime("%B %d, %Y")

    @staticmethod
    def format_event_time(value: datetime) -> str:
        return value.strftime("%I:%M %p UTC")
