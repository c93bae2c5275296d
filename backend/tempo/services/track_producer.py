"""Turn uploaded GPX / FIT files into the canonical Track.

Only the mapping onto TrackPoint lives here; the decoding itself is done by
gpxpy and fitparse.
"""
import logging
import math

import gpxpy
import gpxpy.gpx
from fitparse import FitFile, FitParseError

from tempo.analysis.track import Track, TrackPoint
from tempo.core.errors import TrackDecodeError
from tempo.core.time_utils import ensure_utc

logger = logging.getLogger(__name__)


def _haversine(lat1, lon1, lat2, lon2):
    """Return great‑circle distance in meters between two WGS84 points.

    Uses the standard haversine formula; sufficient for per‑point distances
    over a typical GPS activity track.
    """
    R = 6371000.0
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return R * c


def _semicircles_to_degrees(val):
    return val * (180 / 2**31) if val is not None else None


def _gpx_extension_value(point, tag: str):
    """Read e.g. <gpxtpx:hr> from a Garmin TrackPointExtension."""
    for ext in point.extensions:
        for child in ext.iter():
            if child.tag.split("}")[-1] == tag and child.text:
                try:
                    return int(float(child.text))
                except ValueError:
                    return None
    return None


def track_from_gpx(text: str) -> Track:
    """Parse GPX text into a Track; points without a timestamp are skipped."""
    try:
        gpx = gpxpy.parse(text)
    except gpxpy.gpx.GPXException as exc:
        raise TrackDecodeError(f"Invalid GPX: {exc}") from exc

    points: list[TrackPoint] = []
    total_m = 0.0
    last = None
    skipped = 0
    for trk in gpx.tracks:
        for segment in trk.segments:
            for p in segment.points:
                if p.time is None:
                    skipped += 1
                    continue
                if last is not None:
                    total_m += _haversine(last.latitude, last.longitude, p.latitude, p.longitude)
                points.append(TrackPoint(
                    timestamp=ensure_utc(p.time),
                    latitude=p.latitude,
                    longitude=p.longitude,
                    cumulative_distance_m=total_m,
                    elevation_m=p.elevation,
                    heart_rate_bpm=_gpx_extension_value(p, "hr"),
                    cadence_rpm=_gpx_extension_value(p, "cad"),
                    power_w=_gpx_extension_value(p, "power"),
                ))
                last = p

    if skipped:
        logger.debug("Skipped %d GPX points without timestamps", skipped)
    if len(points) < 2:
        raise TrackDecodeError("GPX file has fewer than two timed track points")
    return Track.from_points(points)


def track_from_fit(source) -> Track:
    """Parse a FIT file (path or file-like object) into a Track.

    Prefers the device's cumulative `distance` field; falls back to
    haversine between GPS fixes when the device does not record it.
    """
    try:
        ff = FitFile(source)
        records = [{f.name: f.value for f in record} for record in ff.get_messages("record")]
    except FitParseError as exc:
        raise TrackDecodeError(f"Invalid FIT: {exc}") from exc

    points: list[TrackPoint] = []
    gps_m = 0.0
    prev = None
    for fields in records:
        ts = fields.get("timestamp")
        lat = _semicircles_to_degrees(fields.get("position_lat"))
        lon = _semicircles_to_degrees(fields.get("position_long"))
        if ts is None or lat is None or lon is None:
            continue
        if prev is not None:
            gps_m += _haversine(prev[0], prev[1], lat, lon)
        prev = (lat, lon)

        device_m = fields.get("distance")
        cumulative = float(device_m) if device_m is not None else gps_m
        if points and cumulative < points[-1].cumulative_distance_m:
            # Devices occasionally repeat a stale distance; keep it monotonic
            cumulative = points[-1].cumulative_distance_m

        # Prefer enhanced fields when present
        ele = fields.get("enhanced_altitude")
        if ele is None:
            ele = fields.get("altitude")
        points.append(TrackPoint(
            timestamp=ensure_utc(ts),
            latitude=lat,
            longitude=lon,
            cumulative_distance_m=cumulative,
            elevation_m=float(ele) if ele is not None else None,
            heart_rate_bpm=fields.get("heart_rate"),
            cadence_rpm=fields.get("cadence"),
            power_w=fields.get("power"),
        ))

    if len(points) < 2:
        raise TrackDecodeError("FIT file has fewer than two GPS records")
    return Track.from_points(points)
