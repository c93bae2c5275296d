from sqlalchemy import Column, Integer, String, DateTime, Float
from sqlalchemy.sql import func
from tempo.db import Base


class Workout(Base):
    __tablename__ = "workouts"

    id = Column(Integer, primary_key=True, index=True)

    # Timestamp of the first track point (UTC)
    started_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Core stats, recomputed from the track on import and crop
    duration_s = Column(Float, nullable=False)
    distance_m = Column(Float, nullable=False, index=True)
    avg_pace_s = Column(Float, nullable=False)  # seconds per km

    elev_gain_m = Column(Float, nullable=True)
    elev_loss_m = Column(Float, nullable=True)
    min_elev_m = Column(Float, nullable=True)
    max_elev_m = Column(Float, nullable=True)

    avg_hr_bpm = Column(Integer, nullable=True)
    max_hr_bpm = Column(Integer, nullable=True)
    min_hr_bpm = Column(Integer, nullable=True)
    avg_cadence_rpm = Column(Integer, nullable=True)
    max_cadence_rpm = Column(Integer, nullable=True)
    avg_power_w = Column(Integer, nullable=True)
    max_power_w = Column(Integer, nullable=True)

    # Weighted HR-zone minutes; null when zones are not configured
    relative_effort = Column(Integer, nullable=True)

    name = Column(String(200), nullable=True)
    # easy, tempo, long, race, recovery
    run_type = Column(String(20), nullable=True)
    # api, gpx, fit
    source = Column(String(20), nullable=False, server_default="api")

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
