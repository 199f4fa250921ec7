# -*- coding: utf-8 -*-
from datetime import datetime, timedelta, timezone

import pytest

from utils.datetime_helpers import datetime_to_iso, ensure_utc, parse_iso


def test_ensure_utc_from_naive():
    dt = ensure_utc(datetime(2025, 10, 20, 16, 0, 0))

    assert dt.tzinfo == timezone.utc
    assert dt.hour == 16


def test_ensure_utc_from_aware_non_utc():
    beijing = timezone(timedelta(hours=8))
    dt = ensure_utc(datetime(2025, 10, 21, 0, 0, 0, tzinfo=beijing))

    assert dt.tzinfo == timezone.utc
    assert (dt.day, dt.hour) == (20, 16)


@pytest.mark.parametrize(
    "dt, expected",
    [
        (datetime(2025, 10, 20, 16, 0, 0), "2025-10-20T16:00:00+00:00"),
        (
            datetime(2025, 10, 21, 0, 0, 0, tzinfo=timezone(timedelta(hours=8))),
            "2025-10-20T16:00:00+00:00",
        ),
        (None, None),
    ],
)
def test_datetime_to_iso(dt, expected):
    assert datetime_to_iso(dt) == expected


@pytest.mark.parametrize(
    "raw",
    ["2025-10-20T16:00:00Z", "2025-10-20T16:00:00+00:00", "2025-10-21T00:00:00+08:00"],
)
def test_parse_iso_normalizes_to_utc(raw):
    assert parse_iso(raw) == datetime(2025, 10, 20, 16, 0, 0, tzinfo=timezone.utc)


def test_parse_iso_empty_and_invalid():
    assert parse_iso(None) is None
    assert parse_iso("") is None
    with pytest.raises(ValueError):
        parse_iso("not-a-date")
