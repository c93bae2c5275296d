from datetime import datetime, timedelta, timezone
import random

from tempo.analysis.track import Track, TrackPoint
from tempo.core.time_utils import seconds_to_hhmmss
from tempo.db import Base, SessionLocal, engine
from tempo.models.best_effort import BestEffort
from tempo.models.workout import Workout
from tempo.models.workout_split import WorkoutSplit
from tempo.models.workout_track import WorkoutTrack
from tempo.services.leaderboard import leaderboard
from tempo.services.workouts import bulk_create_workouts


def synthetic_track(start: datetime, distance_m: float, pace_s_per_km: float) -> Track:
    """A straight-ish run sampled every 5 s with a little pace noise."""
    points = []
    elapsed = 0.0
    dist = 0.0
    lat, lon = 40.0, -75.0
    while dist < distance_m:
        points.append(
            TrackPoint(
                timestamp=start + timedelta(seconds=elapsed),
                latitude=lat,
                longitude=lon,
                cumulative_distance_m=dist,
                elevation_m=30.0 + random.uniform(-2.0, 2.0),
                heart_rate_bpm=random.randint(135, 170),
            )
        )
        step = 5.0 * 1000.0 / (pace_s_per_km * random.uniform(0.9, 1.1))
        elapsed += 5.0
        dist = min(distance_m, dist + step)
        lat += step / 111_320.0
    points.append(
        TrackPoint(
            timestamp=start + timedelta(seconds=elapsed),
            latitude=lat,
            longitude=lon,
            cumulative_distance_m=dist,
        )
    )
    return Track.from_points(points)


def clear_workouts(db) -> None:
    """Delete every workout so we can reseed cleanly."""
    for model in (BestEffort, WorkoutSplit, WorkoutTrack, Workout):
        db.query(model).delete()
    db.commit()


def seed_demo_workouts(db) -> None:
    """Insert a 12-week block of demo workouts (easy, tempo, long)."""
    now = datetime.now(timezone.utc).replace(hour=7, minute=0, second=0, microsecond=0)
    start_day = now - timedelta(weeks=11)

    tracks = []
    for week in range(12):
        week_start = start_day + timedelta(weeks=week)

        # Tue easy, Thu tempo, Sun long run
        for offset, name, run_type, dist_km, pace in [
            (1, "Easy run", "easy", random.uniform(6.0, 11.0), random.uniform(330, 370)),
            (3, "Tempo", "tempo", random.uniform(8.0, 14.0), random.uniform(255, 290)),
            (6, "Long run", "long", random.uniform(16.0, 30.0), random.uniform(320, 350)),
        ]:
            day = week_start + timedelta(days=offset)
            if day > now:
                continue
            tracks.append((synthetic_track(day, dist_km * 1000.0, pace), name, run_type))

    changes = bulk_create_workouts(db, tracks, source="seed")
    print(f"Seeded {len(changes)} demo workouts")

    for record in leaderboard.get_records(db):
        print(f"  {record.distance:<15} {seconds_to_hhmmss(record.time_s)}  (workout {record.workout_id})")


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        clear_workouts(db)
        seed_demo_workouts(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
