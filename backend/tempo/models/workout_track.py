from sqlalchemy import Column, Integer, DateTime, Float, ForeignKey
from tempo.db import Base, JSONType


class WorkoutTrack(Base):
    """The single live track of a workout.

    Never updated in place: a crop deletes the row and inserts a new one
    with `version + 1`.
    """

    __tablename__ = "workout_tracks"

    workout_id = Column(Integer, ForeignKey("workouts.id", ondelete="CASCADE"), primary_key=True)
    version = Column(Integer, nullable=False, default=1)

    start_time = Column(DateTime(timezone=True), nullable=False)
    total_distance_m = Column(Float, nullable=False)
    total_duration_s = Column(Float, nullable=False)
    points_count = Column(Integer, nullable=False)
    # [{timestamp, lat, lon, d, ele, hr, cad, pwr}]
    points = Column(JSONType, nullable=False)
