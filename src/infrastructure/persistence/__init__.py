"""
Repository pattern implementations for the workout log.

Repositories translate between domain models and stored representations.
"""

from .workouts import DEFAULT_STORAGE_KEY, WorkoutRepository

__all__ = ["DEFAULT_STORAGE_KEY", "WorkoutRepository"]
