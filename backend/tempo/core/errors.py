"""Domain exceptions raised by the analysis and service layers.

The HTTP layer maps these onto status codes; nothing here knows about
FastAPI.
"""


class CropValidationError(ValueError):
    """Crop parameters are malformed (negative trims, over-trim)."""


class TrackDataError(ValueError):
    """A track cannot be used for analysis."""


class NonMonotonicTrackError(TrackDataError):
    """Cumulative distance or timestamps step backwards."""


class TrackDecodeError(TrackDataError):
    """An uploaded activity file could not be turned into a track."""


class TrackUnavailableError(TrackDataError):
    """The stored track for a workout is missing or unreadable."""


class WorkoutNotFoundError(LookupError):
    pass


class DerivedMetricFailure(Exception):
    """A post-mutation recomputation (splits, leaderboard, relative effort) failed.

    Never raised out of the service layer: it is built, logged and handed
    back to the caller alongside the successful primary result.
    """

    def __init__(self, step: str, workout_id: int, cause: Exception):
        self.step = step
        self.workout_id = workout_id
        self.cause = cause
        super().__init__(f"{step} recalculation failed for workout {workout_id}: {cause}")
