"""Fixed-distance splits (1 km or 1 mile) computed from a track.

Splits are always regenerated wholesale from the current track; there is no
incremental patching.
"""
from __future__ import annotations

from dataclasses import dataclass

from tempo.analysis.track import Track
from tempo.core.constants import SPLIT_DISTANCE_M, SPLIT_EPSILON_M


@dataclass(frozen=True)
class Split:
    index: int  # 1-based
    distance_m: float
    duration_s: float
    pace_s: float  # seconds per split unit (km or mile)
    start_elapsed_s: float


def split_distance_for(unit_preference: str) -> float:
    try:
        return SPLIT_DISTANCE_M[unit_preference]
    except KeyError:
        raise ValueError(f"Unknown unit preference: {unit_preference!r}") from None


class _TimeAtDistance:
    """Elapsed time at a distance, for queries made in increasing order.

    Uses the earliest sample that reaches the distance and interpolates
    linearly from the sample before it. Outside the sampled range the nearest
    sample's time is returned.
    """

    def __init__(self, distances: list[float], times: list[float]):
        self.d = distances
        self.t = times
        self.j = 0

    def __call__(self, x: float) -> float:
        d, t = self.d, self.t
        n = len(d)
        while self.j < n and d[self.j] < x:
            self.j += 1
        j = self.j
        if j == 0:
            return t[0]
        if j >= n:
            return t[-1]
        d0, d1 = d[j - 1], d[j]
        # d0 < x <= d1, so d1 > d0
        return t[j - 1] + (x - d0) / (d1 - d0) * (t[j] - t[j - 1])


def compute_splits(
    track: Track,
    total_distance_m: float,
    total_duration_s: float,
    split_distance_m: float,
) -> list[Split]:
    """Partition `track` into `split_distance_m` segments.

    Boundary times are interpolated between the two bracketing samples. A
    trailing remainder longer than SPLIT_EPSILON_M becomes a final partial
    split; anything shorter is folded into the previous split so the split
    distances always sum to `total_distance_m`.
    """
    if split_distance_m <= 0:
        raise ValueError("split_distance_m must be > 0")
    points = track.points
    if len(points) < 2 or total_distance_m <= 0:
        return []

    distances = track.distances()
    times = track.elapsed()
    if times[-1] <= 0 and total_duration_s > 0:
        # No usable timestamps: estimate from the share of total distance
        span = distances[-1] - distances[0]
        times = [
            ((x - distances[0]) / span) * total_duration_s if span > 0 else 0.0
            for x in distances
        ]

    base = distances[0]
    time_at = _TimeAtDistance(distances, times)

    splits: list[Split] = []
    prev_boundary = 0.0
    prev_time = time_at(base)
    k = 1
    while k * split_distance_m <= total_distance_m + 1e-9:
        boundary = k * split_distance_m
        t_b = time_at(base + boundary)
        duration = max(0.0, t_b - prev_time)
        splits.append(Split(
            index=k,
            distance_m=split_distance_m,
            duration_s=duration,
            pace_s=duration,
            start_elapsed_s=prev_time,
        ))
        prev_boundary = boundary
        prev_time = max(prev_time, t_b)
        k += 1

    remaining = total_distance_m - prev_boundary
    if remaining <= 0:
        return splits

    t_end = max(prev_time, time_at(base + total_distance_m))
    duration = t_end - prev_time
    if remaining > SPLIT_EPSILON_M or not splits:
        splits.append(Split(
            index=k,
            distance_m=remaining,
            duration_s=duration,
            pace_s=duration / (remaining / split_distance_m),
            start_elapsed_s=prev_time,
        ))
    else:
        last = splits[-1]
        merged_distance = last.distance_m + remaining
        merged_duration = last.duration_s + duration
        splits[-1] = Split(
            index=last.index,
            distance_m=merged_distance,
            duration_s=merged_duration,
            pace_s=merged_duration / (merged_distance / split_distance_m),
            start_elapsed_s=last.start_elapsed_s,
        )
    return splits
