from typing import Optional

from sqlalchemy.orm import Session

from tempo.analysis.relative_effort import default_zones
from tempo.core.config import settings
from tempo.models.user_settings import UserSettings


def get_user_settings(db: Session) -> UserSettings:
    """Return the single settings row, creating it with defaults if needed."""
    row = db.query(UserSettings).order_by(UserSettings.id).first()
    if row is None:
        row = UserSettings(unit_preference=settings.default_unit_preference)
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def unit_preference(db: Session) -> str:
    return get_user_settings(db).unit_preference or settings.default_unit_preference


def heart_rate_zones(db: Session) -> Optional[list[dict]]:
    """Configured zones, else zones derived from HR_MAX, else None."""
    zones = get_user_settings(db).hr_zones
    if zones:
        return zones
    if settings.hr_max:
        return default_zones(settings.hr_max)
    return None
