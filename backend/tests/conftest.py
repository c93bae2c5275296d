import os
from datetime import datetime, timedelta, timezone

import pytest

# Use in-memory sqlite for tests; must be set before tempo.db is imported
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

from tempo.analysis.track import Track, TrackPoint  # noqa: E402
from tempo.db import Base, SessionLocal, engine  # noqa: E402
from tempo.models.best_effort import BestEffort  # noqa: E402,F401
from tempo.models.user_settings import UserSettings  # noqa: E402,F401
from tempo.models.workout import Workout  # noqa: E402,F401
from tempo.models.workout_split import WorkoutSplit  # noqa: E402,F401
from tempo.models.workout_track import WorkoutTrack  # noqa: E402,F401

START = datetime(2025, 1, 1, 7, 0, tzinfo=timezone.utc)


def build_track(samples, start=START, hr=None):
    """Track from (elapsed_s, cumulative_distance_m) pairs.

    `hr` is an optional list of heart rates, one per sample.
    """
    points = []
    for k, (elapsed, dist) in enumerate(samples):
        points.append(
            TrackPoint(
                timestamp=start + timedelta(seconds=elapsed),
                latitude=40.0 + dist / 111_320.0,
                longitude=-75.0,
                cumulative_distance_m=float(dist),
                heart_rate_bpm=hr[k] if hr else None,
            )
        )
    return Track.from_points(points)


def steady_track(distance_m, pace_s_per_km, step_m=100.0, start=START):
    """Even-paced track sampled every `step_m` meters."""
    samples = []
    d = 0.0
    while d < distance_m:
        samples.append((d * pace_s_per_km / 1000.0, d))
        d += step_m
    samples.append((distance_m * pace_s_per_km / 1000.0, distance_m))
    return build_track(samples, start=start)


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from tempo.main import app

    # main creates tables at import; start every test from empty ones
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    return TestClient(app)
