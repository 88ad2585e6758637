"""Tests for timestamp parsing and the submission ordering key."""

from datetime import datetime, timezone

from assignment_core.time_utils import parse_timestamp, submission_sort_key, to_utc_iso


class TestParseTimestamp:
    def test_z_suffix(self):
        assert parse_timestamp("2025-01-01T09:00:00Z") == datetime(2025, 1, 1, 9, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        assert to_utc_iso("2025-01-01T10:30:00+02:00") == "2025-01-01T08:30:00Z"

    def test_naive_assumed_utc(self):
        assert to_utc_iso("2025-01-01 09:00:00") == "2025-01-01T09:00:00Z"

    def test_short_fraction(self):
        dt = parse_timestamp("2025-01-01T09:00:00.12Z")
        assert dt == datetime(2025, 1, 1, 9, 0, 0, 120000, tzinfo=timezone.utc)

    def test_long_fraction_truncated(self):
        dt = parse_timestamp("2025-01-01T09:00:00.123456789+00:00")
        assert dt.microsecond == 123456

    def test_space_separator_with_fraction(self):
        assert parse_timestamp("2025-01-01 09:00:00.5").microsecond == 500000

    def test_unparseable(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None
        assert to_utc_iso("yesterday") == ""


class TestSubmissionSortKey:
    def test_fraction_orders_within_second(self):
        early = {"application_id": "b", "submitted_at": "2025-01-01T09:00:00.1Z"}
        late = {"application_id": "a", "submitted_at": "2025-01-01T09:00:00.25Z"}
        assert submission_sort_key(early) < submission_sort_key(late)

    def test_undated_sorts_last(self):
        dated = {"application_id": "z", "submitted_at": "2030-01-01T00:00:00Z"}
        undated = {"application_id": "a", "submitted_at": "not a date"}
        assert submission_sort_key(dated) < submission_sort_key(undated)
