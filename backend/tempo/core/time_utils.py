from tempo.core.constants import KM_M, MILE_M


def seconds_to_hhmmss(total_seconds: float) -> str:
    """
    Convert total seconds -> 'HH:MM:SS' (fractions are rounded).
    Example: 2732 -> '00:45:32'
    """
    total_seconds = int(round(total_seconds))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_pace(duration_seconds: float, distance_m: float, unit: str = "metric") -> str:
    """
    Compute pace as 'M:SS/km' or 'M:SS/mi'.
    Example: duration=1500, distance=5000 m, metric -> '5:00/km'
    """
    label = "mi" if unit == "imperial" else "km"
    unit_m = MILE_M if unit == "imperial" else KM_M
    if distance_m <= 0:
        return f"0:00/{label}"

    pace_sec = int(round(duration_seconds / (distance_m / unit_m)))

    minutes = pace_sec // 60
    seconds = pace_sec % 60
    return f"{minutes}:{seconds:02d}/{label}"


def ensure_utc(dt):
    """Return `dt` as an aware datetime, assuming UTC when it is naive."""
    from datetime import timezone
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_local_datetime(dt, tz_name: str | None = None):
    """Convert a datetime from source tz (assume UTC if naive) to local or given tz.

    - If `tz_name` is 'local' or None: use system local timezone.
    - If `tz_name` is IANA tz name (e.g., 'America/New_York'): use that.
    """
    dt = ensure_utc(dt)
    if tz_name and tz_name != "local":
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
        try:
            return dt.astimezone(ZoneInfo(tz_name))
        except ZoneInfoNotFoundError:
            return dt.astimezone()
    return dt.astimezone()
