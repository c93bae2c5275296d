"""Fastest contiguous window of a track covering a target distance.

Window duration as a function of its start distance is piecewise linear,
with breakpoints where either end of the window lands exactly on a sample.
So the minimum over all fractional windows is found by evaluating only the
windows anchored on a sample at one end, with the other end interpolated to
its exact sub-sample position. Two monotonic scans visit those anchors:

  * start-anchored: window starts at sample i, end pointer walks forward
  * end-anchored: window ends at sample j, start pointer walks forward

Each pointer only advances, so a track of n points costs O(n) per target.

Where several samples share a distance (the runner stopped), a window
starting there leaves at the *latest* of those samples and a window ending
there arrives at the *earliest* one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Mapping, Optional

from tempo.analysis.track import Track
from tempo.core.constants import DISTANCE_EPSILON_M, STANDARD_DISTANCES
from tempo.core.errors import NonMonotonicTrackError

logger = logging.getLogger(__name__)

# Durations closer than this are ties; the earlier window wins
TIE_EPSILON_S = 1e-9


@dataclass(frozen=True)
class BestEffortResult:
    time_s: float
    start_index: int  # last sample at or before the window start
    end_index: int  # first sample at or after the window end
    start_elapsed_s: float
    end_elapsed_s: float
    start_distance_m: float
    data_quality_warning: bool = False


@dataclass(frozen=True)
class BestEffortCandidate:
    distance_name: str
    distance_m: float
    time_s: float
    workout_id: int
    workout_date: datetime
    data_quality_warning: bool = False


def _check_monotonic(distances: list[float], times: list[float]) -> None:
    for k in range(1, len(distances)):
        if distances[k] < distances[k - 1]:
            raise NonMonotonicTrackError(
                f"cumulative distance decreases at point {k} "
                f"({distances[k - 1]} -> {distances[k]})"
            )
        if times[k] < times[k - 1]:
            raise NonMonotonicTrackError(f"timestamp decreases at point {k}")


def _better(duration: float, start_d: float, best: Optional[tuple]) -> bool:
    if best is None:
        return True
    if duration < best[0] - TIE_EPSILON_S:
        return True
    return abs(duration - best[0]) <= TIE_EPSILON_S and start_d < best[1]


def _has_gap(
    distances: list[float],
    times: list[float],
    start: int,
    end: int,
    max_gap_s: Optional[float],
    max_gap_m: Optional[float],
) -> bool:
    for k in range(start, end):
        if max_gap_s is not None and times[k + 1] - times[k] > max_gap_s:
            return True
        if max_gap_m is not None and distances[k + 1] - distances[k] > max_gap_m:
            return True
    return False


def find_best_effort(
    track: Track,
    target_distance_m: float,
    max_gap_s: Optional[float] = None,
    max_gap_m: Optional[float] = None,
) -> Optional[BestEffortResult]:
    """Return the minimal-duration window of exactly `target_distance_m`.

    Returns None when the track does not qualify (shorter than the target or
    fewer than two points). Raises NonMonotonicTrackError when distance or
    time steps backwards. When the chosen window spans a sample gap wider
    than `max_gap_s` seconds or `max_gap_m` meters the result is flagged with
    `data_quality_warning`.
    """
    if target_distance_m <= 0:
        raise ValueError("target_distance_m must be > 0")
    points = track.points
    n = len(points)
    if n < 2 or track.total_distance_m < target_distance_m - DISTANCE_EPSILON_M:
        return None

    d = track.distances()
    t = track.elapsed()
    _check_monotonic(d, t)

    span_end = d[-1]
    if span_end - d[0] < target_distance_m - DISTANCE_EPSILON_M:
        return None

    # (duration, start_distance, start_index, end_index, start_t, end_t)
    best: Optional[tuple] = None

    # Start-anchored windows
    hi = 0
    for i in range(n):
        if i + 1 < n and d[i + 1] == d[i]:
            continue  # leave from the last sample at this distance
        end_d = d[i] + target_distance_m
        if end_d > span_end + DISTANCE_EPSILON_M:
            break
        end_d = min(end_d, span_end)
        while hi < n - 1 and d[hi] < end_d:
            hi += 1
        if hi == 0 or d[hi - 1] >= end_d:
            end_t = t[hi]
        else:
            d0, d1 = d[hi - 1], d[hi]
            end_t = t[hi - 1] + (end_d - d0) / (d1 - d0) * (t[hi] - t[hi - 1])
        duration = end_t - t[i]
        if _better(duration, d[i], best):
            best = (duration, d[i], i, hi, t[i], end_t)

    # End-anchored windows
    lo = 0
    for j in range(n):
        if j > 0 and d[j - 1] == d[j]:
            continue  # arrive at the first sample at this distance
        start_d = d[j] - target_distance_m
        if start_d < d[0] - DISTANCE_EPSILON_M:
            continue
        start_d = max(start_d, d[0])
        while lo < n - 1 and d[lo + 1] <= start_d:
            lo += 1
        if lo == n - 1 or d[lo + 1] == d[lo]:
            start_t = t[lo]
        else:
            d0, d1 = d[lo], d[lo + 1]
            start_t = t[lo] + (start_d - d0) / (d1 - d0) * (t[lo + 1] - t[lo])
        duration = t[j] - start_t
        if _better(duration, start_d, best):
            best = (duration, start_d, lo, j, start_t, t[j])

    if best is None:
        return None

    duration, start_d, start_idx, end_idx, start_t, end_t = best
    flagged = _has_gap(d, t, start_idx, end_idx, max_gap_s, max_gap_m)
    if flagged:
        logger.warning(
            "Sparse sampling inside best %.1fm window (points %d-%d); "
            "interpolated time %.1fs may be unreliable",
            target_distance_m, start_idx, end_idx, duration,
        )
    return BestEffortResult(
        time_s=duration,
        start_index=start_idx,
        end_index=end_idx,
        start_elapsed_s=start_t,
        end_elapsed_s=end_t,
        start_distance_m=start_d,
        data_quality_warning=flagged,
    )


def best_effort_candidates(
    track: Track,
    workout_id: int,
    workout_date: datetime,
    distances: Mapping[str, float] = STANDARD_DISTANCES,
    max_gap_s: Optional[float] = None,
    max_gap_m: Optional[float] = None,
) -> Iterator[BestEffortCandidate]:
    """Yield one candidate per distance the track qualifies for."""
    for name, target in distances.items():
        result = find_best_effort(track, target, max_gap_s=max_gap_s, max_gap_m=max_gap_m)
        if result is None:
            continue
        yield BestEffortCandidate(
            distance_name=name,
            distance_m=target,
            time_s=result.time_s,
            workout_id=workout_id,
            workout_date=workout_date,
            data_quality_warning=result.data_quality_warning,
        )
