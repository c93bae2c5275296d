"""Global best-effort leaderboard, one record per standard distance.

Every mutation path (create, bulk create, crop, delete, admin rebuild)
goes through one of the hooks on LeaderboardMaintainer, which all preserve

    record[d] = min over qualifying workouts w of best_effort(w, d)

and delete the record for a distance no workout qualifies for.

Records are written one distance at a time. A write reads the row FOR
UPDATE, decides and commits while holding that distance's lock, and bumps
the row's `version`. Rescans remember each record's (workout_id, version)
before gathering candidates and rescan again instead of overwriting a record
that changed in the meantime. A track that cannot be loaded during a rescan
is skipped with a warning rather than failing the update.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tempo.analysis.best_effort import BestEffortCandidate, find_best_effort
from tempo.analysis.track import Track
from tempo.core.config import settings
from tempo.core.constants import DISTANCE_EPSILON_M, STANDARD_DISTANCES, TIME_EPSILON_S
from tempo.core.errors import TrackDataError
from tempo.core.time_utils import ensure_utc
from tempo.models.best_effort import BestEffort
from tempo.models.workout import Workout
from tempo.services.tracks import load_track

logger = logging.getLogger(__name__)

# Rescans of a distance whose record keeps changing underneath us
RESCAN_ATTEMPTS = 3

# Re-reads after losing an insert race on the unique distance
WRITE_ATTEMPTS = 3


class LeaderboardMaintainer:
    def __init__(
        self,
        distances: Mapping[str, float] = STANDARD_DISTANCES,
        track_loader: Callable[[Session, int], Track] = load_track,
        max_gap_s: Optional[float] = None,
        max_gap_m: Optional[float] = None,
    ):
        self.distances = distances
        self.track_loader = track_loader
        self.max_gap_s = settings.sparse_gap_s if max_gap_s is None else max_gap_s
        self.max_gap_m = settings.sparse_gap_m if max_gap_m is None else max_gap_m
        self._locks = {name: threading.Lock() for name in distances}

    # ---- reads ----

    def get_records(self, db: Session) -> list[BestEffort]:
        """Point-in-time snapshot of every record, shortest distance first."""
        return db.query(BestEffort).order_by(BestEffort.distance_m).all()

    def distances_held_by(self, db: Session, workout_id: int) -> set[str]:
        rows = (
            db.query(BestEffort.distance)
            .filter(BestEffort.workout_id == workout_id)
            .all()
        )
        return {name for (name,) in rows}

    # ---- hooks ----

    def rebuild_all(
        self,
        db: Session,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[BestEffort]:
        """Recompute every record from scratch.

        Candidates are gathered in one pass over the qualifying workouts,
        then written one distance at a time with a commit after each, so a
        cancellation leaves every distance either fully old or fully new.
        """
        logger.info("Starting full recalculation of best efforts")
        names = list(self.distances)
        expected = self._snapshot(db, names)
        best = self._best_candidates(
            db, self._qualifying(db, names), names, cancel_event
        )
        if best is None:
            logger.info("Best effort recalculation cancelled before any record was written")
            return self.get_records(db)

        conflicts = []
        cancelled = False
        for name in sorted(names, key=self.distances.get, reverse=True):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Best effort recalculation cancelled after partial write")
                cancelled = True
                break
            if not self._write(db, name, best.get(name), expected[name]):
                conflicts.append(name)

        if conflicts and not cancelled:
            logger.info(
                "Records for %s changed during recalculation; rescanning", ", ".join(conflicts)
            )
            self._rescan(db, conflicts)

        records = self.get_records(db)
        logger.info("Completed recalculation of best efforts. Found %d best efforts", len(records))
        return records

    def on_workout_created(self, db: Session, workout_id: int) -> list[str]:
        """Offer a new workout's efforts; only strictly faster times replace a record."""
        workout = db.get(Workout, workout_id)
        if workout is None:
            logger.warning("Workout %s not found when updating best efforts", workout_id)
            return []
        best = self._best_candidates(db, [workout], self.distances.keys())
        changed = self._offer(db, best.values())
        if changed:
            logger.info("Updated best efforts for workout %s: %s", workout_id, ", ".join(changed))
        else:
            logger.debug("No best efforts updated for workout %s", workout_id)
        return changed

    def on_workouts_created(self, db: Session, workout_ids: Iterable[int]) -> list[str]:
        """Bulk variant of on_workout_created: one pass, one write per distance."""
        ids = list(workout_ids)
        if not ids:
            return []
        workouts = (
            db.query(Workout)
            .filter(Workout.id.in_(ids))
            .order_by(Workout.started_at, Workout.id)
            .all()
        )
        best = self._best_candidates(db, workouts, self.distances.keys())
        changed = self._offer(db, best.values())
        logger.info(
            "Bulk best effort update for %d workouts changed %d records", len(workouts), len(changed)
        )
        return changed

    def on_workout_deleted(
        self,
        db: Session,
        workout_id: int,
        held_distances: Optional[Iterable[str]] = None,
    ) -> list[str]:
        """Rescan every distance the deleted workout held.

        `held_distances` should be captured before the delete: on Postgres
        the foreign key cascade removes the rows along with the workout.
        """
        names = set(held_distances or ()) | self.distances_held_by(db, workout_id)
        names &= set(self.distances)
        if not names:
            return []
        logger.info(
            "Workout %s deleted; rescanning %s", workout_id, ", ".join(sorted(names))
        )
        self._rescan(db, sorted(names), exclude={workout_id})
        return sorted(names)

    def on_workout_cropped(
        self,
        db: Session,
        workout_id: int,
        held_distances: Optional[Iterable[str]] = None,
    ) -> list[str]:
        """Re-validate the records a cropped workout held before the crop.

        A record survives only if the cropped track still achieves the stored
        time. Otherwise it is vacated and the distance is rescanned across all
        qualifying workouts, cropped one included. A crop only removes
        samples, so the workout cannot improve a distance it did not hold.
        """
        names = set(held_distances or ()) | self.distances_held_by(db, workout_id)
        names &= set(self.distances)
        if not names:
            return []

        try:
            track = self.track_loader(db, workout_id)
        except TrackDataError as exc:
            logger.warning("Cropped workout %s has no usable track: %s", workout_id, exc)
            track = None

        vacated = set()
        for name in sorted(names):
            record = self._record(db, name)
            if record is None or record.workout_id != workout_id or track is None:
                vacated.add(name)
                continue
            try:
                result = find_best_effort(
                    track, self.distances[name], max_gap_s=self.max_gap_s, max_gap_m=self.max_gap_m
                )
            except TrackDataError as exc:
                logger.warning("Cropped workout %s failed re-validation: %s", workout_id, exc)
                result = None
            if result is not None and result.time_s <= record.time_s + TIME_EPSILON_S:
                logger.debug(
                    "Cropped workout %s still holds %s (%.1fs)", workout_id, name, result.time_s
                )
                continue
            logger.info(
                "Cropped workout %s can no longer achieve %s in %.1fs; record vacated",
                workout_id, name, record.time_s,
            )
            vacated.add(name)

        if vacated:
            self._rescan(db, sorted(vacated))
        return sorted(vacated)

    # ---- internals ----

    def _qualifying(self, db: Session, names: Iterable[str], exclude: Iterable[int] = ()):
        targets = [self.distances[n] for n in names]
        if not targets:
            return []
        query = db.query(Workout).filter(
            Workout.distance_m >= min(targets) - DISTANCE_EPSILON_M
        )
        excluded = list(exclude)
        if excluded:
            query = query.filter(Workout.id.notin_(excluded))
        return query.order_by(Workout.started_at, Workout.id).all()

    def _best_candidates(
        self,
        db: Session,
        workouts: Iterable[Workout],
        names: Iterable[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[dict[str, BestEffortCandidate]]:
        """Fastest candidate per distance across `workouts`.

        Earlier workouts win ties. Returns None if cancelled.
        """
        names = list(names)
        best: dict[str, BestEffortCandidate] = {}
        for workout in workouts:
            if cancel_event is not None and cancel_event.is_set():
                return None
            try:
                track = self.track_loader(db, workout.id)
            except TrackDataError as exc:
                logger.warning("Skipping workout %s in best effort scan: %s", workout.id, exc)
                continue
            for name in names:
                target = self.distances[name]
                if track.total_distance_m < target - DISTANCE_EPSILON_M:
                    continue
                try:
                    result = find_best_effort(
                        track, target, max_gap_s=self.max_gap_s, max_gap_m=self.max_gap_m
                    )
                except TrackDataError as exc:
                    logger.warning("Skipping workout %s in best effort scan: %s", workout.id, exc)
                    break
                if result is None:
                    continue
                current = best.get(name)
                if current is None or result.time_s < current.time_s - TIME_EPSILON_S:
                    best[name] = BestEffortCandidate(
                        distance_name=name,
                        distance_m=target,
                        time_s=result.time_s,
                        workout_id=workout.id,
                        workout_date=ensure_utc(workout.started_at),
                        data_quality_warning=result.data_quality_warning,
                    )
        return best

    def _rescan(self, db: Session, names: Iterable[str], exclude: Iterable[int] = ()) -> None:
        """Recompute the records for `names` from every qualifying workout.

        A record that changes while candidates are gathered is rescanned.
        After RESCAN_ATTEMPTS the faster of it and the candidate is kept.
        """
        pending = list(names)
        best: dict[str, BestEffortCandidate] = {}
        for _ in range(RESCAN_ATTEMPTS):
            expected = self._snapshot(db, pending)
            best = self._best_candidates(db, self._qualifying(db, pending, exclude), pending)
            pending = [n for n in pending if not self._write(db, n, best.get(n), expected[n])]
            if not pending:
                return
            logger.info("Records for %s changed during the scan; rescanning", ", ".join(pending))
        logger.warning(
            "Records for %s kept changing; keeping the faster time", ", ".join(pending)
        )
        self._offer(db, [best[n] for n in pending if n in best])

    def _offer(self, db: Session, candidates: Iterable[BestEffortCandidate]) -> list[str]:
        """Write each candidate that strictly beats the current record."""
        changed = []
        for candidate in candidates:
            name = candidate.distance_name

            def apply(record, candidate=candidate, name=name):
                if record is not None and candidate.time_s >= record.time_s - TIME_EPSILON_S:
                    logger.debug(
                        "Preserving best effort for %s: %.1fs (new workout: %.1fs)",
                        name, record.time_s, candidate.time_s,
                    )
                    return False
                self._store(db, name, record, candidate)
                return True

            if self._locked_write(db, name, apply):
                changed.append(name)
        return changed

    def _write(
        self,
        db: Session,
        name: str,
        candidate: Optional[BestEffortCandidate],
        expected: Optional[tuple],
    ) -> bool:
        """Replace the record for `name` with `candidate`, or remove it.

        `expected` is the record's (workout_id, version) from before the
        candidate was gathered. Returns False without writing when the record
        has changed since.
        """
        conflict = False

        def apply(record):
            nonlocal conflict
            if self._state(record) != expected:
                conflict = True
                return False
            if candidate is None:
                if record is None:
                    return False
                logger.info("No workout qualifies for %s any more; removing record", name)
                db.delete(record)
                db.flush()
                return True
            if (
                record is not None
                and record.workout_id == candidate.workout_id
                and abs(record.time_s - candidate.time_s) <= TIME_EPSILON_S
            ):
                return False
            self._store(db, name, record, candidate)
            return True

        self._locked_write(db, name, apply)
        return not conflict

    def _locked_write(
        self,
        db: Session,
        name: str,
        apply: Callable[[Optional[BestEffort]], bool],
    ) -> bool:
        """Read the record FOR UPDATE, let `apply` change it, and commit.

        The distance lock is held from the read through the commit. `apply`
        returns whether it wrote anything. A write that loses an insert race
        on the distance is rolled back and decided again on a fresh read.
        """
        with self._locks[name]:
            for attempt in range(WRITE_ATTEMPTS):
                record = self._record(db, name, for_update=True)
                try:
                    wrote = apply(record)
                    db.commit()
                    return wrote
                except IntegrityError:
                    db.rollback()
                    if attempt == WRITE_ATTEMPTS - 1:
                        raise
                    logger.info("Concurrent write to the %s record; re-reading", name)
        return False

    def _store(
        self,
        db: Session,
        name: str,
        record: Optional[BestEffort],
        candidate: BestEffortCandidate,
    ) -> None:
        now = datetime.now(timezone.utc)
        if record is None:
            record = BestEffort(distance=name, version=0)
            db.add(record)
        record.distance_m = candidate.distance_m
        record.time_s = candidate.time_s
        record.workout_id = candidate.workout_id
        record.workout_date = candidate.workout_date
        record.calculated_at = now
        record.version = (record.version or 0) + 1
        db.flush()

    def _snapshot(self, db: Session, names: Iterable[str]) -> dict[str, Optional[tuple]]:
        names = list(names)
        rows = (
            db.query(BestEffort)
            .filter(BestEffort.distance.in_(names))
            .populate_existing()
            .all()
        )
        found = {r.distance: self._state(r) for r in rows}
        return {name: found.get(name) for name in names}

    @staticmethod
    def _state(record: Optional[BestEffort]) -> Optional[tuple]:
        if record is None:
            return None
        return (record.workout_id, record.version)

    def _record(self, db: Session, name: str, for_update: bool = False) -> Optional[BestEffort]:
        # Always re-read: another session may have committed since we loaded it
        query = db.query(BestEffort).filter(BestEffort.distance == name).populate_existing()
        if for_update:
            query = query.with_for_update()
        return query.first()


# Shared instance used by the API and services
leaderboard = LeaderboardMaintainer()


def get_leaderboard() -> LeaderboardMaintainer:
    return leaderboard
