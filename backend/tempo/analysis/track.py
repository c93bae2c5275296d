"""Canonical track model shared by the split, best-effort and crop logic.

A Track is produced upstream (file decoders, API payloads) and is never
mutated: cropping builds a new Track. Points are ordered by timestamp and
carry a non-decreasing cumulative distance.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Optional

from tempo.core.errors import NonMonotonicTrackError, TrackDataError
from tempo.core.time_utils import ensure_utc


@dataclass(frozen=True)
class TrackPoint:
    timestamp: datetime
    latitude: float
    longitude: float
    cumulative_distance_m: float
    elevation_m: Optional[float] = None
    heart_rate_bpm: Optional[int] = None
    cadence_rpm: Optional[int] = None
    power_w: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "lat": self.latitude,
            "lon": self.longitude,
            "d": self.cumulative_distance_m,
            "ele": self.elevation_m,
            "hr": self.heart_rate_bpm,
            "cad": self.cadence_rpm,
            "pwr": self.power_w,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TrackPoint":
        return cls(
            timestamp=ensure_utc(datetime.fromisoformat(data["timestamp"])),
            latitude=float(data["lat"]),
            longitude=float(data["lon"]),
            cumulative_distance_m=float(data["d"]),
            elevation_m=data.get("ele"),
            heart_rate_bpm=data.get("hr"),
            cadence_rpm=data.get("cad"),
            power_w=data.get("pwr"),
        )


@dataclass(frozen=True)
class Track:
    points: tuple
    total_distance_m: float
    total_duration_s: float
    start_time: datetime

    @classmethod
    def from_points(cls, points: Iterable[TrackPoint]) -> "Track":
        """Build a track and derive its totals from the first and last sample."""
        pts = tuple(points)
        if not pts:
            raise TrackDataError("A track needs at least one point")
        first, last = pts[0], pts[-1]
        return cls(
            points=pts,
            total_distance_m=last.cumulative_distance_m - first.cumulative_distance_m,
            total_duration_s=(last.timestamp - first.timestamp).total_seconds(),
            start_time=first.timestamp,
        )

    def elapsed(self) -> list[float]:
        """Seconds since `start_time` for every point."""
        return [(p.timestamp - self.start_time).total_seconds() for p in self.points]

    def distances(self) -> list[float]:
        return [p.cumulative_distance_m for p in self.points]

    def validate(self) -> "Track":
        """Fail fast when the ordering invariants do not hold."""
        prev = None
        for idx, p in enumerate(self.points):
            if prev is not None:
                if p.timestamp < prev.timestamp:
                    raise NonMonotonicTrackError(
                        f"timestamp steps backwards at point {idx}"
                    )
                if p.cumulative_distance_m < prev.cumulative_distance_m:
                    raise NonMonotonicTrackError(
                        f"cumulative distance steps backwards at point {idx} "
                        f"({prev.cumulative_distance_m} -> {p.cumulative_distance_m})"
                    )
            prev = p
        return self

    def to_json(self) -> list[dict]:
        return [p.to_dict() for p in self.points]

    @classmethod
    def from_json(cls, rows: list[dict]) -> "Track":
        try:
            return cls.from_points(TrackPoint.from_dict(r) for r in rows)
        except (KeyError, TypeError, ValueError) as exc:
            raise TrackDataError(f"Unreadable track points: {exc}") from exc


@dataclass
class TrackAggregates:
    """Workout-level summary recomputed whenever a track is created or cropped."""

    distance_m: float
    duration_s: float
    avg_pace_s: float  # seconds per km
    elev_gain_m: Optional[float] = None
    elev_loss_m: Optional[float] = None
    min_elev_m: Optional[float] = None
    max_elev_m: Optional[float] = None
    avg_hr_bpm: Optional[int] = None
    max_hr_bpm: Optional[int] = None
    min_hr_bpm: Optional[int] = None
    avg_cadence_rpm: Optional[int] = None
    max_cadence_rpm: Optional[int] = None
    avg_power_w: Optional[int] = None
    max_power_w: Optional[int] = None


def compute_aggregates(track: Track) -> TrackAggregates:
    distance_m = track.total_distance_m
    duration_s = track.total_duration_s
    agg = TrackAggregates(
        distance_m=distance_m,
        duration_s=duration_s,
        avg_pace_s=duration_s / (distance_m / 1000.0) if distance_m > 0 else 0.0,
    )

    elevations = [p.elevation_m for p in track.points if p.elevation_m is not None]
    if elevations:
        gain = 0.0
        loss = 0.0
        for a, b in zip(elevations, elevations[1:]):
            de = b - a
            if de > 0:
                gain += de
            else:
                loss += -de
        agg.elev_gain_m = gain if gain > 0 else None
        agg.elev_loss_m = loss if loss > 0 else None
        agg.min_elev_m = min(elevations)
        agg.max_elev_m = max(elevations)

    hrs = [p.heart_rate_bpm for p in track.points if p.heart_rate_bpm is not None]
    if hrs:
        agg.avg_hr_bpm = int(round(sum(hrs) / len(hrs)))
        agg.max_hr_bpm = max(hrs)
        agg.min_hr_bpm = min(hrs)

    cadences = [p.cadence_rpm for p in track.points if p.cadence_rpm is not None]
    if cadences:
        agg.avg_cadence_rpm = int(round(sum(cadences) / len(cadences)))
        agg.max_cadence_rpm = max(cadences)

    powers = [p.power_w for p in track.points if p.power_w is not None]
    if powers:
        agg.avg_power_w = int(round(sum(powers) / len(powers)))
        agg.max_power_w = max(powers)

    return agg


def rebaseline(points: Iterable[TrackPoint]) -> Track:
    """Shift cumulative distance so the first kept point sits at zero."""
    pts = tuple(points)
    if not pts:
        raise TrackDataError("Nothing to rebaseline")
    base_d = pts[0].cumulative_distance_m
    return Track.from_points(
        replace(p, cumulative_distance_m=p.cumulative_distance_m - base_d) for p in pts
    )
