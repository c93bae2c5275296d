from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from tempo.db import Base, JSONType


class UserSettings(Base):
    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True)

    # "metric" or "imperial"; selects 1 km or 1 mile splits
    unit_preference = Column(String(20), nullable=False, server_default="metric")

    # [{min_bpm, max_bpm}] x 5, or null when zones are not configured
    hr_zones = Column(JSONType, nullable=True)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
