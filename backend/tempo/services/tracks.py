"""Wholesale persistence of a workout's track and splits.

Derived rows are never patched: every write deletes what was there and
inserts a fresh set in the caller's transaction.
"""
import logging

from sqlalchemy.orm import Session

from tempo.analysis.splits import Split
from tempo.analysis.track import Track
from tempo.core.errors import TrackUnavailableError
from tempo.models.workout_split import WorkoutSplit
from tempo.models.workout_track import WorkoutTrack

logger = logging.getLogger(__name__)


def load_track(db: Session, workout_id: int) -> Track:
    """Rebuild the in-memory Track for a workout.

    Raises TrackUnavailableError when the row is missing and TrackDataError
    when the stored points cannot be decoded.
    """
    row = db.get(WorkoutTrack, workout_id)
    if row is None:
        raise TrackUnavailableError(f"Workout {workout_id} has no stored track")
    return Track.from_json(row.points or [])


def replace_track(db: Session, workout_id: int, track: Track) -> WorkoutTrack:
    """Swap in `track` as the workout's live track (no commit)."""
    old = db.get(WorkoutTrack, workout_id)
    version = 1
    if old is not None:
        version = (old.version or 0) + 1
        db.delete(old)
        db.flush()
    row = WorkoutTrack(
        workout_id=workout_id,
        version=version,
        start_time=track.start_time,
        total_distance_m=track.total_distance_m,
        total_duration_s=track.total_duration_s,
        points_count=len(track.points),
        points=track.to_json(),
    )
    db.add(row)
    return row


def replace_splits(db: Session, workout_id: int, splits: list[Split], unit: str) -> int:
    """Delete every split of the workout and insert `splits` (no commit)."""
    removed = db.query(WorkoutSplit).filter(WorkoutSplit.workout_id == workout_id).delete()
    for s in splits:
        db.add(WorkoutSplit(
            workout_id=workout_id,
            idx=s.index,
            distance_m=s.distance_m,
            duration_s=s.duration_s,
            pace_s=s.pace_s,
            unit=unit,
        ))
    logger.debug("Replaced splits for workout %s: %d -> %d", workout_id, removed, len(splits))
    return removed
