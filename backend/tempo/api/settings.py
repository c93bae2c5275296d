from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tempo.db import get_db
from tempo.schemas.stats import SettingsRead, SettingsUpdate
from tempo.services import workouts as workout_service
from tempo.services.preferences import get_user_settings

router = APIRouter(prefix="/settings", tags=["settings"])


def _settings_read(row) -> SettingsRead:
    return SettingsRead(unit_preference=row.unit_preference, hr_zones=row.hr_zones)


@router.get("/", response_model=SettingsRead)
def read_settings(db: Session = Depends(get_db)):
    return _settings_read(get_user_settings(db))


@router.put("/")
def update_settings(payload: SettingsUpdate, db: Session = Depends(get_db)):
    """Update preferences; a unit change regenerates every workout's splits."""
    row = get_user_settings(db)
    if payload.hr_zones is not None:
        row.hr_zones = [z.model_dump() for z in payload.hr_zones]
        db.commit()

    splits = None
    if payload.unit_preference is not None:
        splits = workout_service.set_unit_preference(db, payload.unit_preference)

    db.refresh(row)
    return {
        "settings": _settings_read(row),
        "splits": splits,
    }
