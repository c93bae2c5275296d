import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tempo.core.config import settings
from tempo.core.time_utils import seconds_to_hhmmss, to_local_datetime
from tempo.db import get_db
from tempo.schemas.stats import BestEffortList, BestEffortRead
from tempo.services.leaderboard import LeaderboardMaintainer, get_leaderboard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/best-efforts", response_model=BestEffortList)
def get_best_efforts(
    db: Session = Depends(get_db),
    maintainer: LeaderboardMaintainer = Depends(get_leaderboard),
):
    """
    Fastest time for each standard distance (400m through Marathon),
    taken from any segment of any workout.
    """
    rows = maintainer.get_records(db)
    return BestEffortList(
        distances=[
            BestEffortRead(
                distance=r.distance,
                distance_m=r.distance_m,
                time_s=r.time_s,
                time=seconds_to_hhmmss(r.time_s),
                workout_id=r.workout_id,
                workout_date=to_local_datetime(r.workout_date, settings.timezone).date(),
                calculated_at=r.calculated_at,
            )
            for r in rows
        ]
    )


@router.post("/best-efforts/recalculate")
def recalculate_best_efforts(
    db: Session = Depends(get_db),
    maintainer: LeaderboardMaintainer = Depends(get_leaderboard),
):
    """Full recalculation across all workouts; may take a while."""
    logger.info("Starting manual recalculation of best efforts")
    records = maintainer.rebuild_all(db)
    return {
        "message": "Best efforts recalculated successfully",
        "count": len(records),
    }
