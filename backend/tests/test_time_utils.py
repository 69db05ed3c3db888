"""Timestamp parsing and rendering."""

from datetime import datetime, timedelta, timezone

import pytest

from storepos.time_utils import business_day, hours_from_now, parse_iso_datetime, to_utc_z


class TestParseIsoDatetime:

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_means_no_bound(self, value):
        assert parse_iso_datetime(value) is None

    def test_trailing_z_is_utc(self):
        assert parse_iso_datetime("2026-10-19T08:30:00Z") == datetime(2026, 10, 19, 8, 30)

    def test_offset_is_folded_into_utc(self):
        assert parse_iso_datetime("2026-10-19T16:30:00+08:00") == datetime(2026, 10, 19, 8, 30)

    def test_date_only(self):
        assert parse_iso_datetime("2026-10-19") == datetime(2026, 10, 19)

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_iso_datetime("yesterday")


class TestRendering:

    def test_to_utc_z_drops_microseconds(self):
        assert to_utc_z(datetime(2026, 10, 19, 8, 30, 0, 999999)) == "2026-10-19T08:30:00Z"

    def test_to_utc_z_converts_aware_values(self):
        aware = datetime(2026, 10, 19, 16, 30, tzinfo=timezone(timedelta(hours=8)))
        assert to_utc_z(aware) == "2026-10-19T08:30:00Z"

    def test_to_utc_z_none(self):
        assert to_utc_z(None) is None

    def test_business_day(self):
        assert business_day(datetime(2026, 1, 2, 23, 59)) == "20260102"

    def test_hours_from_now(self):
        start = datetime(2026, 10, 19, 8, 0)
        assert hours_from_now(24, start=start) == datetime(2026, 10, 20, 8, 0)
