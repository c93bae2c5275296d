import io
import os

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from sqlalchemy.orm import Session

from tempo.core.errors import (
    CropValidationError,
    TrackDataError,
    WorkoutNotFoundError,
)
from tempo.core.time_utils import format_pace, seconds_to_hhmmss
from tempo.db import get_db
from tempo.models.workout import Workout
from tempo.models.workout_split import WorkoutSplit
from tempo.models.workout_track import WorkoutTrack
from tempo.schemas.workout import (
    CropRequest,
    SplitRead,
    TrackRead,
    WorkoutBulkCreate,
    WorkoutChangeRead,
    WorkoutCreate,
    WorkoutRead,
)
from tempo.services import workouts as workout_service
from tempo.services.leaderboard import LeaderboardMaintainer, get_leaderboard
from tempo.services.preferences import unit_preference
from tempo.services.track_producer import track_from_fit, track_from_gpx

router = APIRouter(prefix="/workouts", tags=["workouts"])


def _to_read(workout: Workout, unit: str = "metric") -> WorkoutRead:
    return WorkoutRead(
        id=workout.id,
        started_at=workout.started_at,
        name=workout.name,
        run_type=workout.run_type,
        source=workout.source,
        distance_m=workout.distance_m,
        duration_s=workout.duration_s,
        avg_pace_s=workout.avg_pace_s,
        duration=seconds_to_hhmmss(workout.duration_s),
        pace=format_pace(workout.duration_s, workout.distance_m, unit),
        elev_gain_m=workout.elev_gain_m,
        elev_loss_m=workout.elev_loss_m,
        avg_hr_bpm=workout.avg_hr_bpm,
        max_hr_bpm=workout.max_hr_bpm,
        relative_effort=workout.relative_effort,
    )


def _change_read(change, unit: str) -> WorkoutChangeRead:
    return WorkoutChangeRead(workout=_to_read(change.workout, unit), warnings=change.warnings)


@router.post("/", response_model=WorkoutChangeRead)
def create_workout(
    payload: WorkoutCreate,
    db: Session = Depends(get_db),
    maintainer: LeaderboardMaintainer = Depends(get_leaderboard),
):
    try:
        change = workout_service.create_workout(
            db,
            payload.to_track(),
            name=payload.name,
            run_type=payload.run_type.value if payload.run_type else None,
            maintainer=maintainer,
        )
    except TrackDataError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _change_read(change, unit_preference(db))


@router.post("/bulk", response_model=list[WorkoutChangeRead])
def bulk_create_workouts(
    payload: WorkoutBulkCreate,
    db: Session = Depends(get_db),
    maintainer: LeaderboardMaintainer = Depends(get_leaderboard),
):
    """Create many workouts with a single leaderboard pass at the end."""
    try:
        tracks = [
            (w.to_track().validate(), w.name, w.run_type.value if w.run_type else None)
            for w in payload.workouts
        ]
    except TrackDataError as e:
        raise HTTPException(status_code=422, detail=str(e))
    changes = workout_service.bulk_create_workouts(db, tracks, maintainer=maintainer)
    unit = unit_preference(db)
    return [_change_read(c, unit) for c in changes]


@router.post("/import", response_model=WorkoutChangeRead)
def import_activity(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    maintainer: LeaderboardMaintainer = Depends(get_leaderboard),
):
    filename = file.filename or "import"
    ext = os.path.splitext(filename)[1].lower()
    if ext not in [".gpx", ".fit"]:
        raise HTTPException(status_code=400, detail="Only .gpx or .fit files are supported")

    data = file.file.read()
    try:
        if ext == ".gpx":
            track = track_from_gpx(data.decode("utf-8"))
        else:
            track = track_from_fit(io.BytesIO(data))
    except (TrackDataError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid file: {e}")

    try:
        change = workout_service.create_workout(
            db,
            track,
            name=os.path.splitext(filename)[0] or None,
            source=ext.lstrip("."),
            maintainer=maintainer,
        )
    except TrackDataError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _change_read(change, unit_preference(db))


@router.get("/", response_model=list[WorkoutRead])
def list_workouts(db: Session = Depends(get_db)):
    # Most recent first
    rows = db.query(Workout).order_by(Workout.started_at.desc(), Workout.id.desc()).all()
    unit = unit_preference(db)
    return [_to_read(w, unit) for w in rows]


@router.get("/{workout_id}", response_model=WorkoutRead)
def get_workout(workout_id: int, db: Session = Depends(get_db)):
    try:
        workout = workout_service.get_workout(db, workout_id)
    except WorkoutNotFoundError:
        raise HTTPException(status_code=404, detail="Workout not found")
    return _to_read(workout, unit_preference(db))


@router.get("/{workout_id}/splits", response_model=list[SplitRead])
def get_workout_splits(workout_id: int, db: Session = Depends(get_db)):
    try:
        workout_service.get_workout(db, workout_id)
    except WorkoutNotFoundError:
        raise HTTPException(status_code=404, detail="Workout not found")
    rows = (
        db.query(WorkoutSplit)
        .filter(WorkoutSplit.workout_id == workout_id)
        .order_by(WorkoutSplit.idx)
        .all()
    )
    return rows


@router.get("/{workout_id}/track", response_model=TrackRead)
def get_workout_track(workout_id: int, db: Session = Depends(get_db)):
    t = db.get(WorkoutTrack, workout_id)
    if not t:
        raise HTTPException(status_code=404, detail="No track")
    return TrackRead(
        workout_id=t.workout_id,
        version=t.version,
        start_time=t.start_time,
        total_distance_m=t.total_distance_m,
        total_duration_s=t.total_duration_s,
        points_count=t.points_count,
        points=t.points or [],
    )


@router.post("/{workout_id}/crop", response_model=WorkoutChangeRead)
def crop_workout(
    workout_id: int,
    payload: CropRequest,
    db: Session = Depends(get_db),
    maintainer: LeaderboardMaintainer = Depends(get_leaderboard),
):
    try:
        change = workout_service.crop_workout(
            db, workout_id, payload.start_trim_s, payload.end_trim_s, maintainer=maintainer
        )
    except WorkoutNotFoundError:
        raise HTTPException(status_code=404, detail="Workout not found")
    except CropValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except TrackDataError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _change_read(change, unit_preference(db))


@router.post("/{workout_id}/splits/recalculate")
def recalculate_workout_splits(workout_id: int, db: Session = Depends(get_db)):
    try:
        count = workout_service.recalculate_splits(db, workout_id)
    except WorkoutNotFoundError:
        raise HTTPException(status_code=404, detail="Workout not found")
    except TrackDataError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"message": "Splits recalculated", "workout_id": workout_id, "count": count}


@router.delete("/{workout_id}")
def delete_workout(
    workout_id: int,
    db: Session = Depends(get_db),
    maintainer: LeaderboardMaintainer = Depends(get_leaderboard),
):
    try:
        failures = workout_service.delete_workout(db, workout_id, maintainer=maintainer)
    except WorkoutNotFoundError:
        raise HTTPException(status_code=404, detail="Workout not found")
    return {"message": "Workout deleted", "warnings": [str(f) for f in failures]}
