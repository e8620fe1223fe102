"""
Unit tests for the reminder cache, reminder windows and date helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from campus_api.models.enums import NotificationType
from campus_api.services.reminder_service import EventReminderService, SentReminderCache
from campus_api.utils.date_helpers import DateHelpers

T0 = datetime(2026, 3, 1, 12, 0, 0)
ONE_DAY = NotificationType.EVENT_REMINDER_1_DAY
ONE_HOUR = NotificationType.EVENT_REMINDER_1_HOUR


class TestSentReminderCache:
    def test_unknown_key_not_sent(self):
        cache = SentReminderCache()
        assert not cache.was_sent(1, ONE_DAY, T0)

    def test_marked_key_is_sent(self):
        cache = SentReminderCache()
        cache.mark_sent(1, ONE_DAY, T0)

        assert cache.was_sent(1, ONE_DAY, T0 + timedelta(minutes=5))
        assert not cache.was_sent(1, ONE_HOUR, T0)
        assert not cache.was_sent(2, ONE_DAY, T0)

    def test_entries_expire(self):
        cache = SentReminderCache(ttl_minutes=30)
        cache.mark_sent(1, ONE_DAY, T0)

        assert not cache.was_sent(1, ONE_DAY, T0 + timedelta(minutes=31))
        assert len(cache) == 0

    def test_oldest_entries_evicted_beyond_capacity(self):
        cache = SentReminderCache(max_entries=2)
        cache.mark_sent(1, ONE_DAY, T0)
        cache.mark_sent(2, ONE_DAY, T0 + timedelta(seconds=1))
        cache.mark_sent(3, ONE_DAY, T0 + timedelta(seconds=2))

        assert len(cache) == 2
        assert not cache.was_sent(1, ONE_DAY, T0 + timedelta(seconds=3))
        assert cache.was_sent(3, ONE_DAY, T0 + timedelta(seconds=3))

    def test_instances_do_not_share_state(self):
        first, second = SentReminderCache(), SentReminderCache()
        first.mark_sent(1, ONE_DAY, T0)
        assert not second.was_sent(1, ONE_DAY, T0)


class TestReminderWindows:
    @pytest.mark.parametrize(
        "hours,expected",
        [
            (25.0, ONE_DAY),
            (24.17, ONE_DAY),
            (23.0, ONE_DAY),
            (22.9, None),
            (25.1, None),
            (1.1, ONE_HOUR),
            (1.0, ONE_HOUR),
            (0.9, ONE_HOUR),
            (0.5, None),
            (12.0, None),
        ],
    )
    def test_reminder_kind(self, hours, expected):
        assert EventReminderService.reminder_kind(hours) == expected


class TestDateHelpers:
    def test_aware_values_normalized_to_naive_utc(self):
        aware = datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert DateHelpers.to_naive_utc(aware) == datetime(2026, 3, 1, 12, 0)

    def test_none_passes_through(self):
        assert DateHelpers.to_naive_utc(None) is None

    def test_utc_midnight(self):
        assert DateHelpers.utc_midnight(datetime(2026, 3, 1, 23, 59)) == datetime(
            2026, 3, 1
        )

    def test_utc_midnight_of_aware_value_uses_utc_day(self):
        late_in_tokyo = datetime(2026, 3, 2, 1, 0, tzinfo=timezone(timedelta(hours=9)))
        assert DateHelpers.utc_midnight(late_in_tokyo) == datetime(2026, 3, 1)
