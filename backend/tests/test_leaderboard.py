import threading
from datetime import timedelta

import pytest

from conftest import START, build_track, steady_track
from tempo.analysis.best_effort import find_best_effort
from tempo.core.errors import TrackDataError
from tempo.models.best_effort import BestEffort
from tempo.models.workout import Workout
from tempo.models.workout_track import WorkoutTrack
from tempo.services.leaderboard import LeaderboardMaintainer
from tempo.services.tracks import load_track
from tempo.services.workouts import (
    bulk_create_workouts,
    create_workout,
    crop_workout,
    delete_workout,
)


@pytest.fixture
def maintainer():
    return LeaderboardMaintainer()


def _day(n):
    return START + timedelta(days=n)


def _records(db, maintainer):
    return {r.distance: (r.workout_id, r.time_s) for r in maintainer.get_records(db)}


def assert_records_optimal(db, maintainer):
    """No stored workout beats a record, and every qualifying distance has one."""
    records = {r.distance: r for r in maintainer.get_records(db)}
    for workout in db.query(Workout).all():
        track = load_track(db, workout.id)
        for name, target in maintainer.distances.items():
            result = find_best_effort(track, target)
            if result is None:
                continue
            assert name in records, f"{name} missing although workout {workout.id} qualifies"
            assert result.time_s >= records[name].time_s - 1e-6


def test_faster_workout_keeps_record_until_deleted(db, maintainer):
    a = create_workout(db, steady_track(10000, 240, start=_day(0)), name="A", maintainer=maintainer)
    b = create_workout(db, steady_track(10000, 250, start=_day(1)), name="B", maintainer=maintainer)

    records = _records(db, maintainer)
    assert records["10K"][0] == a.workout.id
    assert records["10K"][1] == pytest.approx(2400.0)

    delete_workout(db, a.workout.id, maintainer=maintainer)
    records = _records(db, maintainer)
    assert records["10K"][0] == b.workout.id
    assert records["10K"][1] == pytest.approx(2500.0)
    assert_records_optimal(db, maintainer)


def test_deleting_only_qualifier_removes_record(db, maintainer):
    a = create_workout(db, steady_track(10000, 240), maintainer=maintainer)
    create_workout(db, steady_track(3000, 250, start=_day(1)), maintainer=maintainer)

    delete_workout(db, a.workout.id, maintainer=maintainer)
    records = _records(db, maintainer)
    assert "10K" not in records
    assert "5K" not in records
    assert "2 mile" not in records
    assert records["1 mile"][1] == pytest.approx(250 * 1.609344)


def test_slower_workout_does_not_replace_record(db, maintainer):
    a = create_workout(db, steady_track(5000, 240), maintainer=maintainer)
    before = maintainer.get_records(db)
    versions = {r.distance: r.version for r in before}

    create_workout(db, steady_track(5000, 260, start=_day(1)), maintainer=maintainer)
    after = maintainer.get_records(db)
    assert {r.distance: r.workout_id for r in after} == {r.distance: a.workout.id for r in after}
    assert {r.distance: r.version for r in after} == versions


def test_equal_times_keep_the_earlier_workout(db, maintainer):
    a = create_workout(db, steady_track(5000, 250, start=_day(0)), maintainer=maintainer)
    create_workout(db, steady_track(5000, 250, start=_day(1)), maintainer=maintainer)
    assert _records(db, maintainer)["5K"][0] == a.workout.id

    maintainer.rebuild_all(db)
    assert _records(db, maintainer)["5K"][0] == a.workout.id


def test_crop_below_distance_transfers_record(db, maintainer):
    a = create_workout(db, steady_track(6000, 280, start=_day(0)), maintainer=maintainer)
    b = create_workout(db, steady_track(5500, 300, start=_day(1)), maintainer=maintainer)
    assert _records(db, maintainer)["5K"][0] == a.workout.id

    # 1680 s run; keep the first 1080 s (3800 m of samples)
    change = crop_workout(db, a.workout.id, 0, 600, maintainer=maintainer)
    assert change.failures == []
    assert change.workout.distance_m < 5000

    records = _records(db, maintainer)
    assert records["5K"][0] == b.workout.id
    assert records["5K"][1] == pytest.approx(1500.0)
    # still achievable on the cropped track
    assert records["1K"][0] == a.workout.id
    assert records["1K"][1] == pytest.approx(280.0)
    assert_records_optimal(db, maintainer)


def test_crop_below_distance_without_other_qualifier_removes_record(db, maintainer):
    a = create_workout(db, steady_track(6000, 280), maintainer=maintainer)
    crop_workout(db, a.workout.id, 0, 600, maintainer=maintainer)
    records = _records(db, maintainer)
    assert "5K" not in records
    assert records["2 mile"][0] == a.workout.id


def test_crop_that_removes_fast_segment_revalidates_record(db, maintainer):
    # Fast first km (180 s) then 300 s/km to 6 km
    samples = [(0, 0), (180, 1000)] + [(180 + k * 30, 1000 + k * 100) for k in range(1, 51)]
    a = create_workout(db, build_track(samples, start=_day(0)), maintainer=maintainer)
    b = create_workout(db, steady_track(6000, 250, start=_day(1)), maintainer=maintainer)

    records = _records(db, maintainer)
    assert records["1K"] == (a.workout.id, pytest.approx(180.0))
    assert records["5K"][0] == b.workout.id

    crop_workout(db, a.workout.id, 180, 0, maintainer=maintainer)
    records = _records(db, maintainer)
    assert records["1K"][0] == b.workout.id
    assert records["1K"][1] == pytest.approx(250.0)
    assert_records_optimal(db, maintainer)


def test_crop_keeps_holder_with_its_new_best_time(db, maintainer):
    samples = [(0, 0), (180, 1000)] + [(180 + k * 30, 1000 + k * 100) for k in range(1, 31)]
    a = create_workout(db, build_track(samples), maintainer=maintainer)

    crop_workout(db, a.workout.id, 180, 0, maintainer=maintainer)
    records = _records(db, maintainer)
    assert records["1K"][0] == a.workout.id
    assert records["1K"][1] == pytest.approx(300.0)


def test_rebuild_is_idempotent(db, maintainer):
    for n, pace in enumerate([260, 240, 255]):
        create_workout(db, steady_track(11000, pace, start=_day(n)), maintainer=maintainer)

    first = maintainer.rebuild_all(db)
    snapshot = [(r.distance, r.workout_id, r.time_s, r.version) for r in first]
    second = maintainer.rebuild_all(db)
    assert [(r.distance, r.workout_id, r.time_s, r.version) for r in second] == snapshot


def test_rebuild_restores_missing_records(db, maintainer):
    a = create_workout(db, steady_track(5000, 240), maintainer=maintainer)
    db.query(BestEffort).delete()
    db.commit()

    records = maintainer.rebuild_all(db)
    assert {r.distance for r in records} == {"400m", "1/2 mile", "1K", "1 mile", "2 mile", "5K"}
    assert all(r.workout_id == a.workout.id for r in records)
    # shortest distance first
    assert [r.distance_m for r in records] == sorted(r.distance_m for r in records)


def test_cancelled_rebuild_leaves_records_untouched(db, maintainer):
    create_workout(db, steady_track(5000, 240), maintainer=maintainer)
    db.query(BestEffort).delete()
    db.commit()

    cancel = threading.Event()
    cancel.set()
    assert maintainer.rebuild_all(db, cancel_event=cancel) == []
    assert db.query(BestEffort).count() == 0


class CancelAfterWrite(LeaderboardMaintainer):
    """Sets `event` once the record for `distance` has been written."""

    def __init__(self, event, distance):
        super().__init__()
        self.event = event
        self.distance = distance

    def _write(self, db, name, candidate, expected):
        done = super()._write(db, name, candidate, expected)
        if name == self.distance:
            self.event.set()
        return done


def test_rebuild_cancelled_mid_write_keeps_written_distances(db, maintainer):
    a = create_workout(db, steady_track(5000, 240), maintainer=maintainer)
    db.query(BestEffort).delete()
    db.commit()

    cancel = threading.Event()
    records = CancelAfterWrite(cancel, "5K").rebuild_all(db, cancel_event=cancel)
    # longest distance first: only 5K was written before the cancel
    assert [(r.distance, r.workout_id) for r in records] == [("5K", a.workout.id)]
    assert records[0].time_s == pytest.approx(1200.0)


def test_rebuild_keeps_faster_record_committed_meanwhile(db, maintainer):
    create_workout(db, steady_track(5000, 300, start=_day(0)), maintainer=maintainer)
    fast_ids = []

    def loader_that_races(session, workout_id):
        # another writer records a faster 5K while this scan is running
        if not fast_ids:
            fast = create_workout(
                session, steady_track(5000, 200, start=_day(1)), maintainer=LeaderboardMaintainer()
            )
            fast_ids.append(fast.workout.id)
        return load_track(session, workout_id)

    LeaderboardMaintainer(track_loader=loader_that_races).rebuild_all(db)

    records = _records(db, maintainer)
    assert records["5K"] == (fast_ids[0], pytest.approx(1000.0))
    assert records["1K"] == (fast_ids[0], pytest.approx(200.0))
    assert_records_optimal(db, maintainer)


def test_rescan_keeps_faster_record_committed_meanwhile(db, maintainer):
    a = create_workout(db, steady_track(5000, 240, start=_day(0)), maintainer=maintainer)
    b = create_workout(db, steady_track(5000, 260, start=_day(1)), maintainer=maintainer)
    fast_ids = []

    def loader_that_races(session, workout_id):
        if not fast_ids:
            fast = create_workout(
                session, steady_track(5000, 200, start=_day(2)), maintainer=LeaderboardMaintainer()
            )
            fast_ids.append(fast.workout.id)
        return load_track(session, workout_id)

    failures = delete_workout(
        db, a.workout.id, maintainer=LeaderboardMaintainer(track_loader=loader_that_races)
    )
    assert failures == []
    records = _records(db, maintainer)
    assert records["5K"] == (fast_ids[0], pytest.approx(1000.0))
    assert b.workout.id not in {wid for wid, _ in records.values()}
    assert_records_optimal(db, maintainer)


class StaleFirstRead(LeaderboardMaintainer):
    """Reads no record for `distance` once, as if another writer had not committed yet."""

    def __init__(self, distance):
        super().__init__()
        self.stale = {distance}

    def _record(self, db, name, for_update=False):
        if for_update and name in self.stale:
            self.stale.discard(name)
            return None
        return super()._record(db, name, for_update)


def test_lost_insert_race_rereads_and_keeps_faster_record(db, maintainer):
    a = create_workout(db, steady_track(5000, 240, start=_day(0)), maintainer=maintainer)

    change = create_workout(
        db, steady_track(5000, 260, start=_day(1)), maintainer=StaleFirstRead("5K")
    )
    assert change.failures == []
    record = db.query(BestEffort).filter(BestEffort.distance == "5K").one()
    assert (record.workout_id, record.version) == (a.workout.id, 1)
    assert record.time_s == pytest.approx(1200.0)


def test_lost_insert_race_rereads_and_stores_faster_time(db, maintainer):
    create_workout(db, steady_track(5000, 240, start=_day(0)), maintainer=maintainer)

    change = create_workout(
        db, steady_track(5000, 220, start=_day(1)), maintainer=StaleFirstRead("5K")
    )
    assert change.failures == []
    records = db.query(BestEffort).filter(BestEffort.distance == "5K").all()
    assert len(records) == 1
    assert (records[0].workout_id, records[0].version) == (change.workout.id, 2)
    assert records[0].time_s == pytest.approx(1100.0)


def test_delete_reports_leaderboard_failure(db, maintainer):
    a = create_workout(db, steady_track(5000, 240, start=_day(0)), maintainer=maintainer)
    create_workout(db, steady_track(5000, 260, start=_day(1)), maintainer=maintainer)

    def broken_loader(session, wid):
        raise RuntimeError("storage offline")

    failures = delete_workout(
        db, a.workout.id, maintainer=LeaderboardMaintainer(track_loader=broken_loader)
    )
    assert [f.step for f in failures] == ["leaderboard"]
    assert "storage offline" in str(failures[0])
    # the delete itself stands
    assert db.get(Workout, a.workout.id) is None
    assert db.query(BestEffort).filter(BestEffort.workout_id == a.workout.id).count() == 0


def test_corrupt_track_is_skipped(db, maintainer, caplog):
    a = create_workout(db, steady_track(5000, 240, start=_day(0)), maintainer=maintainer)
    b = create_workout(db, steady_track(5000, 260, start=_day(1)), maintainer=maintainer)

    row = db.get(WorkoutTrack, a.workout.id)
    row.points = [{"bad": "row"}]
    db.commit()

    records = maintainer.rebuild_all(db)
    assert {r.workout_id for r in records} == {b.workout.id}
    assert f"Skipping workout {a.workout.id}" in caplog.text


def test_bulk_create_updates_leaderboard_once(db, maintainer):
    tracks = [
        (steady_track(10000, 250, start=_day(0)), "one", "easy"),
        (steady_track(10000, 230, start=_day(1)), "two", "race"),
        (steady_track(5000, 220, start=_day(2)), "three", "tempo"),
    ]
    changes = bulk_create_workouts(db, tracks, maintainer=maintainer)
    assert len(changes) == 3
    ids = [c.workout.id for c in changes]

    records = _records(db, maintainer)
    assert records["10K"] == (ids[1], pytest.approx(2300.0))
    assert records["5K"] == (ids[2], pytest.approx(1100.0))
    assert all(r.version == 1 for r in maintainer.get_records(db))
    assert_records_optimal(db, maintainer)


def test_distances_held_by(db, maintainer):
    a = create_workout(db, steady_track(1700, 240), maintainer=maintainer)
    assert maintainer.distances_held_by(db, a.workout.id) == {"400m", "1/2 mile", "1K", "1 mile"}
    assert maintainer.distances_held_by(db, a.workout.id + 1) == set()


def test_bulk_create_rejects_bad_track_before_writing(db, maintainer):
    tracks = [
        (steady_track(5000, 240, start=_day(0)), "good", None),
        (build_track([(0, 0), (10, 50), (20, 40)], start=_day(1)), "backwards", None),
    ]
    with pytest.raises(TrackDataError):
        bulk_create_workouts(db, tracks, maintainer=maintainer)
    assert db.query(Workout).count() == 0
    assert db.query(BestEffort).count() == 0
