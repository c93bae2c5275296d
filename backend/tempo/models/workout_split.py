from sqlalchemy import Column, Integer, String, Float, ForeignKey
from tempo.db import Base


class WorkoutSplit(Base):
    __tablename__ = "workout_splits"

    id = Column(Integer, primary_key=True, index=True)
    workout_id = Column(Integer, ForeignKey("workouts.id", ondelete="CASCADE"), nullable=False, index=True)

    idx = Column(Integer, nullable=False)  # 1-based split index
    distance_m = Column(Float, nullable=False)
    duration_s = Column(Float, nullable=False)
    pace_s = Column(Float, nullable=False)  # seconds per `unit`
    unit = Column(String(10), nullable=False)  # metric (km) or imperial (mi)
