import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from tempo.api.workouts import router as workouts_router
from tempo.api.stats import router as stats_router
from tempo.api.settings import router as settings_router
from tempo.db import Base, engine
from tempo.models.workout import Workout  # noqa: F401  (import ensures table is registered)
from tempo.models.workout_track import WorkoutTrack  # noqa: F401
from tempo.models.workout_split import WorkoutSplit  # noqa: F401
from tempo.models.best_effort import BestEffort  # noqa: F401
from tempo.models.user_settings import UserSettings  # noqa: F401
from tempo.core.config import settings


logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI()

# Allow CORS for local frontend
origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create DB tables on startup
Base.metadata.create_all(bind=engine)

app.include_router(workouts_router)
app.include_router(stats_router)
app.include_router(settings_router)


@app.get("/")
def root():
    return {"message": "Tempo backend is running"}
