"""Trim time from the start and/or end of a track."""
from __future__ import annotations

from dataclasses import dataclass

from tempo.analysis.track import Track, TrackAggregates, compute_aggregates, rebaseline
from tempo.core.errors import CropValidationError

# Slack for comparing elapsed seconds against trim boundaries
_BOUNDARY_EPSILON_S = 1e-9


@dataclass(frozen=True)
class CropResult:
    track: Track
    aggregates: TrackAggregates
    start_offset_s: float  # how far the start time moved forward


def validate_crop(
    total_duration_s: float,
    start_trim_s: float,
    end_trim_s: float,
    min_remaining_s: float = 0.0,
) -> None:
    """Reject malformed crop parameters before anything is touched."""
    if start_trim_s < 0:
        raise CropValidationError("start_trim_s must be >= 0")
    if end_trim_s < 0:
        raise CropValidationError("end_trim_s must be >= 0")
    if start_trim_s + end_trim_s >= total_duration_s:
        raise CropValidationError(
            f"Cannot trim {start_trim_s + end_trim_s}s from a "
            f"{total_duration_s}s workout"
        )
    remaining = total_duration_s - start_trim_s - end_trim_s
    if remaining < min_remaining_s:
        raise CropValidationError(
            f"Cropping would leave {remaining}s; at least {min_remaining_s}s must remain"
        )


def crop_track(
    track: Track,
    start_trim_s: float,
    end_trim_s: float,
    min_remaining_s: float = 0.0,
) -> CropResult:
    """Keep the samples whose elapsed time lies in
    [start_trim_s, total_duration_s - end_trim_s].

    The kept samples are re-baselined so the new track starts at zero
    distance and its start time is the first kept sample's timestamp.
    Totals and aggregates are recomputed from the kept samples only.
    """
    validate_crop(track.total_duration_s, start_trim_s, end_trim_s, min_remaining_s)

    end_limit = track.total_duration_s - end_trim_s
    kept = [
        p
        for p, elapsed in zip(track.points, track.elapsed())
        if start_trim_s - _BOUNDARY_EPSILON_S <= elapsed <= end_limit + _BOUNDARY_EPSILON_S
    ]
    if len(kept) < 2:
        raise CropValidationError(
            "Cropping would leave fewer than two track points"
        )

    cropped = rebaseline(kept)
    return CropResult(
        track=cropped,
        aggregates=compute_aggregates(cropped),
        start_offset_s=(cropped.start_time - track.start_time).total_seconds(),
    )
