"""
Workout logging logic.

Contains the workout domain models and the store that keeps the workout
list, its map markers, and the persisted copy in step.
"""

from .models import (
    Coordinates,
    InvalidMetricError,
    Workout,
    WorkoutKind,
    build_description,
    create_cycling,
    create_running,
    workout_from_dict,
)
from .store import MapUnavailableError, MarkerBinding, WorkoutPersistence, WorkoutStore

__all__ = [
    "Coordinates",
    "InvalidMetricError",
    "Workout",
    "WorkoutKind",
    "build_description",
    "create_cycling",
    "create_running",
    "workout_from_dict",
    "MapUnavailableError",
    "MarkerBinding",
    "WorkoutPersistence",
    "WorkoutStore",
]
