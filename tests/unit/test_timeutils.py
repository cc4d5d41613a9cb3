"""
Unit tests for timestamp and period helpers.
"""

import unittest
from datetime import datetime, timedelta, timezone

import pytest

from ungdomsstod.timeutils import (
    EARLIEST, add_days_to_date, is_valid_month_id, is_valid_week_id, month_id_for,
    parse_iso, subtract_days, to_iso, week_id_for,
)


class TestTimestamps(unittest.TestCase):
    """Test ISO timestamp formatting and parsing."""

    def test_to_iso_uses_millisecond_utc_format(self):
        moment = datetime(2024, 1, 15, 10, 0, 0, 123456, tzinfo=timezone.utc)
        self.assertEqual(to_iso(moment), "2024-01-15T10:00:00.123Z")

    def test_to_iso_converts_to_utc(self):
        moment = datetime(2024, 1, 15, 11, 0, tzinfo=timezone(timedelta(hours=1)))
        self.assertEqual(to_iso(moment), "2024-01-15T10:00:00.000Z")

    def test_to_iso_pads_earliest_year(self):
        self.assertEqual(to_iso(EARLIEST), "0001-01-01T00:00:00.000Z")

    def test_parse_iso_zulu(self):
        parsed = parse_iso("2024-01-15T10:00:00.000Z")
        self.assertEqual(parsed, datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))

    def test_parse_iso_naive_and_date_are_utc(self):
        self.assertEqual(parse_iso("2024-01-15T10:00:00"), datetime(2024, 1, 15, 10, tzinfo=timezone.utc))
        self.assertEqual(parse_iso("2024-01-15"), datetime(2024, 1, 15, tzinfo=timezone.utc))

    def test_parse_iso_rejects_garbage(self):
        with self.assertRaises(ValueError):
            parse_iso("yesterday")
        with self.assertRaises(ValueError):
            parse_iso("")

    def test_subtract_days_clamps_on_overflow(self):
        now = datetime(2024, 7, 1, tzinfo=timezone.utc)
        self.assertEqual(subtract_days(now, 10 ** 9), EARLIEST)
        self.assertEqual(subtract_days(now, 800000), EARLIEST)
        self.assertEqual(subtract_days(now, 1), datetime(2024, 6, 30, tzinfo=timezone.utc))

    def test_subtract_days_treats_naive_as_utc(self):
        cutoff = subtract_days(datetime(2024, 7, 1, 12, 0), 180)
        self.assertEqual(cutoff, datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc))
        self.assertEqual(subtract_days(datetime(2024, 7, 1), 10 ** 9), EARLIEST)


class TestPeriods:
    """Test week and month identifiers."""

    def test_week_id_first_week(self):
        assert week_id_for(datetime(2024, 1, 1, 12, tzinfo=timezone.utc)) == "2024-W01"

    def test_week_id_uses_stockholm_time(self):
        # Sunday 23:30 UTC is already Monday in Stockholm
        moment = datetime(2024, 12, 29, 23, 30, tzinfo=timezone.utc)
        assert week_id_for(moment) == "2025-W01"

    def test_month_id_uses_stockholm_time(self):
        moment = datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc)
        assert month_id_for(moment) == "2024-02"

    @pytest.mark.parametrize("value,expected", [
        ("2024-W01", True),
        ("2024-W53", True),
        ("2024-W54", False),
        ("2024-W00", False),
        ("2024-W1", False),
        ("2024-01", False),
    ])
    def test_week_id_validation(self, value, expected):
        assert is_valid_week_id(value) is expected

    @pytest.mark.parametrize("value,expected", [
        ("2024-01", True),
        ("2024-12", True),
        ("2024-13", False),
        ("2024-1", False),
        ("2024-W01", False),
    ])
    def test_month_id_validation(self, value, expected):
        assert is_valid_month_id(value) is expected

    def test_add_days_to_date(self):
        assert add_days_to_date("2024-01-01", 21) == "2024-01-22"
        assert add_days_to_date("2024-02-20", 21) == "2024-03-12"
