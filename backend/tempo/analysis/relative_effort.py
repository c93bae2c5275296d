from typing import Optional, Sequence

from tempo.analysis.track import Track
from tempo.core.constants import HR_MAX_GAP_S, HR_ZONE_BOUNDS, HR_ZONE_WEIGHTS


def default_zones(hr_max: int) -> list[dict]:
    """Five zones as fractions of HR max (see HR_ZONE_BOUNDS)."""
    zones = []
    for z in range(5):
        zones.append({
            "min_bpm": int(round(HR_ZONE_BOUNDS[z] * hr_max)),
            "max_bpm": int(round(HR_ZONE_BOUNDS[z + 1] * hr_max)) - 1,
        })
    return zones


def _zone_index(hr: int, zones: Sequence[dict]) -> int:
    for z, zone in enumerate(zones):
        if zone["min_bpm"] <= hr <= zone["max_bpm"]:
            return z
    # Above the top zone still counts as zone 5
    if hr > zones[-1]["max_bpm"]:
        return len(zones) - 1
    return -1


def relative_effort(track: Track, zones: Optional[Sequence[dict]]) -> Optional[int]:
    """Weighted minutes in heart rate zones (1 point/min in Z1 ... 5 in Z5).

    Returns None when zones are not configured or the track carries no
    heart rate.
    """
    if not zones or len(zones) != 5:
        return None
    samples = [
        (elapsed, p.heart_rate_bpm)
        for p, elapsed in zip(track.points, track.elapsed())
        if p.heart_rate_bpm is not None
    ]
    if not samples:
        return None

    time_in_zones = [0.0] * 5
    for (t0, hr), (t1, _) in zip(samples, samples[1:]):
        z = _zone_index(hr, zones)
        if z < 0:
            continue
        time_in_zones[z] += min(max(0.0, t1 - t0), HR_MAX_GAP_S)

    score = sum(w * secs / 60.0 for w, secs in zip(HR_ZONE_WEIGHTS, time_in_zones))
    return int(round(score))
