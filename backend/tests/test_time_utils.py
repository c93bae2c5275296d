from datetime import datetime, timezone

from tempo.core.time_utils import ensure_utc, format_pace, seconds_to_hhmmss, to_local_datetime


def test_seconds_to_hhmmss():
    assert seconds_to_hhmmss(2732) == "00:45:32"
    assert seconds_to_hhmmss(3599.6) == "01:00:00"


def test_format_pace():
    assert format_pace(1500, 5000) == "5:00/km"
    assert format_pace(480, 1609.344, "imperial") == "8:00/mi"
    assert format_pace(100, 0) == "0:00/km"


def test_naive_datetimes_are_utc():
    naive = datetime(2025, 1, 1, 12, 0)
    assert ensure_utc(naive).tzinfo is timezone.utc
    local = to_local_datetime(naive, "America/New_York")
    assert local.hour == 7
    assert to_local_datetime(naive, "Not/AZone").tzinfo is not None
