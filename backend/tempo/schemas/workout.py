from datetime import datetime
from typing import Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from tempo.analysis.track import Track, TrackPoint
from tempo.core.time_utils import ensure_utc


class RunType(str, Enum):
    easy = "easy"
    tempo = "tempo"
    long = "long"
    race = "race"
    recovery = "recovery"


class TrackPointIn(BaseModel):
    timestamp: datetime
    latitude: float
    longitude: float
    cumulative_distance_m: float = Field(ge=0)
    elevation_m: Optional[float] = None
    heart_rate_bpm: Optional[int] = None
    cadence_rpm: Optional[int] = None
    power_w: Optional[int] = None

    def to_point(self) -> TrackPoint:
        return TrackPoint(
            timestamp=ensure_utc(self.timestamp),
            latitude=self.latitude,
            longitude=self.longitude,
            cumulative_distance_m=self.cumulative_distance_m,
            elevation_m=self.elevation_m,
            heart_rate_bpm=self.heart_rate_bpm,
            cadence_rpm=self.cadence_rpm,
            power_w=self.power_w,
        )


class WorkoutCreate(BaseModel):
    """A workout as produced upstream: metadata plus its canonical track."""

    name: Optional[str] = None
    run_type: Optional[RunType] = None
    points: list[TrackPointIn] = Field(min_length=2)

    def to_track(self) -> Track:
        return Track.from_points(p.to_point() for p in self.points)


class WorkoutBulkCreate(BaseModel):
    workouts: list[WorkoutCreate] = Field(min_length=1)


class WorkoutRead(BaseModel):
    """Schema returned to the frontend when reading a workout."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    started_at: datetime
    name: Optional[str] = None
    run_type: Optional[str] = None
    source: Optional[str] = None

    distance_m: float
    duration_s: float
    avg_pace_s: float
    duration: str  # "HH:MM:SS"
    pace: str  # e.g. "5:00/km"

    elev_gain_m: Optional[float] = None
    elev_loss_m: Optional[float] = None
    avg_hr_bpm: Optional[int] = None
    max_hr_bpm: Optional[int] = None
    relative_effort: Optional[int] = None


class WorkoutChangeRead(BaseModel):
    """A successful mutation plus any derived metrics that failed to refresh."""

    workout: WorkoutRead
    warnings: list[str] = []


class CropRequest(BaseModel):
    start_trim_s: float = 0.0
    end_trim_s: float = 0.0


class SplitRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    idx: int
    distance_m: float
    duration_s: float
    pace_s: float
    unit: str


class TrackRead(BaseModel):
    workout_id: int
    version: int
    start_time: datetime
    total_distance_m: float
    total_duration_s: float
    points_count: int
    points: list[dict]
