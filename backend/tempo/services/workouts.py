"""Workout create / crop / delete and the derived metrics they trigger.

The primary write (workout row + track) is committed first. Splits, relative
effort and the leaderboard are then refreshed step by step; a failing step
is logged and reported back as a DerivedMetricFailure, never raised, so the
primary operation still succeeds.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from tempo.analysis.crop import crop_track
from tempo.analysis.relative_effort import relative_effort
from tempo.analysis.splits import compute_splits, split_distance_for
from tempo.analysis.track import Track, TrackAggregates, compute_aggregates
from tempo.core.config import settings
from tempo.core.errors import DerivedMetricFailure, TrackDataError, WorkoutNotFoundError
from tempo.models.best_effort import BestEffort
from tempo.models.workout import Workout
from tempo.models.workout_split import WorkoutSplit
from tempo.models.workout_track import WorkoutTrack
from tempo.services import preferences
from tempo.services.leaderboard import LeaderboardMaintainer, leaderboard
from tempo.services.tracks import load_track, replace_splits, replace_track

logger = logging.getLogger(__name__)


@dataclass
class WorkoutChange:
    workout: Workout
    track: Track
    failures: list[DerivedMetricFailure] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [str(f) for f in self.failures]


def get_workout(db: Session, workout_id: int) -> Workout:
    workout = db.get(Workout, workout_id)
    if workout is None:
        raise WorkoutNotFoundError(f"Workout {workout_id} not found")
    return workout


def _apply_aggregates(workout: Workout, agg: TrackAggregates) -> None:
    workout.distance_m = agg.distance_m
    workout.duration_s = agg.duration_s
    workout.avg_pace_s = agg.avg_pace_s
    workout.elev_gain_m = agg.elev_gain_m
    workout.elev_loss_m = agg.elev_loss_m
    workout.min_elev_m = agg.min_elev_m
    workout.max_elev_m = agg.max_elev_m
    workout.avg_hr_bpm = agg.avg_hr_bpm
    workout.max_hr_bpm = agg.max_hr_bpm
    workout.min_hr_bpm = agg.min_hr_bpm
    workout.avg_cadence_rpm = agg.avg_cadence_rpm
    workout.max_cadence_rpm = agg.max_cadence_rpm
    workout.avg_power_w = agg.avg_power_w
    workout.max_power_w = agg.max_power_w


def _run_derived(
    db: Session,
    step: str,
    workout_id: int,
    fn: Callable[[], object],
    failures: list[DerivedMetricFailure],
) -> None:
    """Run one post-mutation recalculation; failures are logged, not raised."""
    try:
        fn()
    except Exception as exc:
        db.rollback()
        failure = DerivedMetricFailure(step, workout_id, exc)
        logger.warning("%s", failure, exc_info=True)
        failures.append(failure)


def _refresh_splits(db: Session, workout: Workout, track: Track, unit: Optional[str] = None) -> int:
    unit = unit or preferences.unit_preference(db)
    splits = compute_splits(
        track, workout.distance_m, workout.duration_s, split_distance_for(unit)
    )
    replace_splits(db, workout.id, splits, unit)
    db.commit()
    return len(splits)


def _refresh_relative_effort(db: Session, workout: Workout, track: Track) -> None:
    zones = preferences.heart_rate_zones(db)
    if zones is None:
        return
    workout.relative_effort = relative_effort(track, zones)
    db.commit()


def _check_track(track: Track) -> Track:
    track.validate()
    if len(track.points) < 2:
        raise TrackDataError("A workout track needs at least two points")
    return track


def _persist(
    db: Session,
    track: Track,
    name: Optional[str],
    run_type: Optional[str],
    source: str,
) -> Workout:
    _check_track(track)
    workout = Workout(
        started_at=track.start_time,
        name=name,
        run_type=run_type,
        source=source,
    )
    _apply_aggregates(workout, compute_aggregates(track))
    db.add(workout)
    db.flush()
    replace_track(db, workout.id, track)
    db.commit()
    db.refresh(workout)
    return workout


def create_workout(
    db: Session,
    track: Track,
    name: Optional[str] = None,
    run_type: Optional[str] = None,
    source: str = "api",
    maintainer: LeaderboardMaintainer = leaderboard,
) -> WorkoutChange:
    workout = _persist(db, track, name, run_type, source)
    logger.info(
        "Created workout %s: %.0fm in %.0fs (%d points)",
        workout.id, workout.distance_m, workout.duration_s, len(track.points),
    )
    change = WorkoutChange(workout=workout, track=track)
    _run_derived(db, "splits", workout.id, lambda: _refresh_splits(db, workout, track), change.failures)
    _run_derived(
        db, "relative_effort", workout.id,
        lambda: _refresh_relative_effort(db, workout, track), change.failures,
    )
    _run_derived(
        db, "leaderboard", workout.id,
        lambda: maintainer.on_workout_created(db, workout.id), change.failures,
    )
    db.refresh(workout)
    return change


def bulk_create_workouts(
    db: Session,
    tracks: Iterable[tuple[Track, Optional[str], Optional[str]]],
    source: str = "api",
    maintainer: LeaderboardMaintainer = leaderboard,
) -> list[WorkoutChange]:
    """Create many workouts, then update the leaderboard in a single pass.

    `tracks` yields (track, name, run_type). Every track is checked before
    the first workout is written, so an invalid one raises TrackDataError
    with nothing persisted. Workouts that were persisted before a later
    write failed still get their leaderboard pass.
    """
    items = list(tracks)
    for track, _, _ in items:
        _check_track(track)

    changes: list[WorkoutChange] = []
    try:
        for track, name, run_type in items:
            workout = _persist(db, track, name, run_type, source)
            change = WorkoutChange(workout=workout, track=track)
            _run_derived(
                db, "splits", workout.id,
                lambda: _refresh_splits(db, workout, track), change.failures,
            )
            _run_derived(
                db, "relative_effort", workout.id,
                lambda: _refresh_relative_effort(db, workout, track), change.failures,
            )
            changes.append(change)
    except Exception:
        db.rollback()
        raise
    finally:
        if changes:
            failures: list[DerivedMetricFailure] = []
            _run_derived(
                db, "leaderboard", changes[0].workout.id,
                lambda: maintainer.on_workouts_created(db, [c.workout.id for c in changes]),
                failures,
            )
            for change in changes:
                change.failures.extend(failures)
                db.refresh(change.workout)
    logger.info("Bulk created %d workouts", len(changes))
    return changes


def crop_workout(
    db: Session,
    workout_id: int,
    start_trim_s: float,
    end_trim_s: float,
    maintainer: LeaderboardMaintainer = leaderboard,
) -> WorkoutChange:
    """Trim time from the start/end of a workout and refresh derived metrics.

    Raises CropValidationError before anything is written. Once the new
    track is committed the crop stands, whatever happens to splits, the
    leaderboard or relative effort afterwards.
    """
    workout = get_workout(db, workout_id)
    track = load_track(db, workout_id)
    result = crop_track(
        track, start_trim_s, end_trim_s, min_remaining_s=settings.min_crop_remaining_s
    )

    # Captured now: after the crop there is no way to tell what it held
    held = maintainer.distances_held_by(db, workout_id)

    logger.info(
        "Cropping workout %s: trimming %ss from start and %ss from end "
        "(%.0fs -> %.0fs, %.0fm -> %.0fm)",
        workout_id, start_trim_s, end_trim_s,
        track.total_duration_s, result.track.total_duration_s,
        track.total_distance_m, result.track.total_distance_m,
    )
    replace_track(db, workout_id, result.track)
    _apply_aggregates(workout, result.aggregates)
    workout.started_at = result.track.start_time
    db.commit()
    db.refresh(workout)

    change = WorkoutChange(workout=workout, track=result.track)
    _run_derived(
        db, "splits", workout_id, lambda: _refresh_splits(db, workout, result.track), change.failures
    )
    _run_derived(
        db, "leaderboard", workout_id,
        lambda: maintainer.on_workout_cropped(db, workout_id, held), change.failures,
    )
    _run_derived(
        db, "relative_effort", workout_id,
        lambda: _refresh_relative_effort(db, workout, result.track), change.failures,
    )
    db.refresh(workout)
    return change


def delete_workout(
    db: Session,
    workout_id: int,
    maintainer: LeaderboardMaintainer = leaderboard,
) -> list[DerivedMetricFailure]:
    workout = get_workout(db, workout_id)
    held = maintainer.distances_held_by(db, workout_id)

    # Same effect as the FK cascades, done explicitly so SQLite behaves too
    db.query(WorkoutSplit).filter(WorkoutSplit.workout_id == workout_id).delete()
    db.query(WorkoutTrack).filter(WorkoutTrack.workout_id == workout_id).delete()
    db.query(BestEffort).filter(BestEffort.workout_id == workout_id).delete()
    db.delete(workout)
    db.commit()
    logger.info("Deleted workout %s (held %d records)", workout_id, len(held))

    failures: list[DerivedMetricFailure] = []
    _run_derived(
        db, "leaderboard", workout_id,
        lambda: maintainer.on_workout_deleted(db, workout_id, held), failures,
    )
    return failures


def recalculate_splits(db: Session, workout_id: int, unit: Optional[str] = None) -> int:
    """Regenerate one workout's splits from its stored track."""
    workout = get_workout(db, workout_id)
    track = load_track(db, workout_id)
    return _refresh_splits(db, workout, track, unit)


def recalculate_all_splits(db: Session, unit: Optional[str] = None) -> dict:
    """Regenerate splits for every workout; one bad track does not stop the rest."""
    unit = unit or preferences.unit_preference(db)
    workout_ids = [wid for (wid,) in db.query(Workout.id).order_by(Workout.id).all()]
    succeeded = 0
    errors: list[str] = []
    for workout_id in workout_ids:
        try:
            recalculate_splits(db, workout_id, unit)
            succeeded += 1
        except (TrackDataError, WorkoutNotFoundError) as exc:
            db.rollback()
            logger.warning("Error recalculating splits for workout %s: %s", workout_id, exc)
            errors.append(f"Workout {workout_id}: {exc}")
    return {
        "total": len(workout_ids),
        "succeeded": succeeded,
        "failed": len(errors),
        "errors": errors,
    }


def set_unit_preference(db: Session, unit: str) -> dict:
    """Store the unit preference and regenerate every workout's splits."""
    split_distance_for(unit)  # rejects unknown units before writing
    row = preferences.get_user_settings(db)
    changed = row.unit_preference != unit
    row.unit_preference = unit
    db.commit()
    if not changed:
        return {"total": 0, "succeeded": 0, "failed": 0, "errors": []}
    logger.info("Unit preference changed to %s; regenerating splits", unit)
    return recalculate_all_splits(db, unit)
