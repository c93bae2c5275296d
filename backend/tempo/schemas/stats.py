from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class BestEffortRead(BaseModel):
    distance: str
    distance_m: float
    time_s: float
    time: str  # "HH:MM:SS"
    workout_id: int
    workout_date: date
    calculated_at: Optional[datetime] = None


class BestEffortList(BaseModel):
    distances: list[BestEffortRead]


class HeartRateZone(BaseModel):
    min_bpm: int = Field(ge=0)
    max_bpm: int = Field(ge=0)


class SettingsRead(BaseModel):
    unit_preference: Literal["metric", "imperial"]
    hr_zones: Optional[list[HeartRateZone]] = None


class SettingsUpdate(BaseModel):
    """Both fields optional; only what is sent is changed."""

    unit_preference: Optional[Literal["metric", "imperial"]] = None
    hr_zones: Optional[list[HeartRateZone]] = None

    @field_validator("hr_zones")
    @classmethod
    def _five_zones(cls, v):
        if v is not None and len(v) != 5:
            raise ValueError("hr_zones must contain exactly 5 zones")
        return v
