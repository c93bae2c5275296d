from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey
from sqlalchemy.sql import func
from tempo.db import Base


class BestEffort(Base):
    """Leaderboard row: the fastest known time for one standard distance."""

    __tablename__ = "best_efforts"

    id = Column(Integer, primary_key=True, index=True)

    # Distance name, e.g. "5K", "Half-Marathon"
    distance = Column(String(50), nullable=False, unique=True, index=True)
    distance_m = Column(Float, nullable=False)
    time_s = Column(Float, nullable=False)

    workout_id = Column(Integer, ForeignKey("workouts.id", ondelete="CASCADE"), nullable=False, index=True)
    workout_date = Column(DateTime(timezone=True), nullable=False)

    calculated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    # Bumped on every write so concurrent maintainers can detect a change
    version = Column(Integer, nullable=False, default=1)
