"""
Domain models for logged workouts.

These models represent the core business concepts. They have no dependencies
on external frameworks, storage backends, or the map. A workout is a value:
once built, nothing about it changes, including its derived metrics.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


MONTHS = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)


class InvalidMetricError(ValueError):
    """Raised when a workout metric is missing, non-finite, or negative."""
    pass


class WorkoutKind(Enum):
    """The activity types a workout can be logged as."""
    RUNNING = "running"
    CYCLING = "cycling"


@dataclass(frozen=True)
class Coordinates:
    """
    A latitude/longitude pair where the workout was logged.

    Frozen because coordinates are values. Two workouts clicked at the
    same spot share equal coordinates.
    """
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValueError("Coordinates must be finite numbers")

    def as_list(self) -> list[float]:
        """[lat, lng], the order Leaflet expects."""
        return [self.latitude, self.longitude]


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _new_workout_id() -> str:
    return uuid4().hex


def _check_metric(name: str, value: Any) -> float:
    """Return value as a float, or raise if it is not a usable metric."""
    if value is None or isinstance(value, bool):
        raise InvalidMetricError(f"{name} is required")
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidMetricError(f"{name} must be a number")
    if not math.isfinite(number):
        raise InvalidMetricError(f"{name} must be a finite number")
    if number < 0:
        raise InvalidMetricError(f"{name} cannot be negative")
    return number


def _ratio(numerator: float, denominator: float) -> Optional[float]:
    # A zero divisor has no meaningful pace/speed
    if denominator == 0:
        return None
    return numerator / denominator


def build_description(kind: WorkoutKind, created_at: datetime) -> str:
    """Human-readable label, e.g. "Running on April 14"."""
    return f"{kind.value.capitalize()} on {MONTHS[created_at.month - 1]} {created_at.day}"


@dataclass(frozen=True)
class Workout:
    """
    A single logged workout.

    This is a tagged variant: `kind` decides which payload fields are
    populated. Running workouts carry cadence and pace; cycling workouts
    carry elevation gain and speed. The other pair stays None.

    Prefer create_running / create_cycling. The constructor fills in a
    missing pace or speed and description, and rejects a pace or speed
    that doesn't match distance and duration.
    """
    kind: WorkoutKind
    coordinates: Coordinates
    distance_km: float
    duration_min: float
    cadence_spm: Optional[float] = None
    elevation_gain_m: Optional[float] = None
    pace_min_per_km: Optional[float] = None
    speed_km_per_h: Optional[float] = None
    description: str = ""
    id: str = field(default_factory=_new_workout_id)
    created_at: datetime = field(default_factory=_local_now)

    def __post_init__(self) -> None:
        _check_metric("distance", self.distance_km)
        _check_metric("duration", self.duration_min)

        if self.kind == WorkoutKind.RUNNING:
            _check_metric("cadence", self.cadence_spm)
            if self.elevation_gain_m is not None or self.speed_km_per_h is not None:
                raise ValueError("Running workouts cannot carry cycling metrics")
        elif self.kind == WorkoutKind.CYCLING:
            _check_metric("elevation gain", self.elevation_gain_m)
            if self.cadence_spm is not None or self.pace_min_per_km is not None:
                raise ValueError("Cycling workouts cannot carry running metrics")

        if not self.id:
            raise ValueError("Workout id cannot be empty")

        # Pace and speed are functions of distance and duration, never inputs
        if self.is_running:
            metric_field = "pace_min_per_km"
            expected = _ratio(self.duration_min, self.distance_km)
        else:
            metric_field = "speed_km_per_h"
            expected = _ratio(self.distance_km, self.duration_min)

        given = getattr(self, metric_field)
        if given is None:
            object.__setattr__(self, metric_field, expected)
        elif expected is None or not math.isclose(given, expected):
            raise ValueError(f"{metric_field} does not match distance and duration")

        if not self.description:
            object.__setattr__(self, "description", build_description(self.kind, self.created_at))

    @property
    def is_running(self) -> bool:
        return self.kind == WorkoutKind.RUNNING

    @property
    def is_cycling(self) -> bool:
        return self.kind == WorkoutKind.CYCLING

    @property
    def derived_metric(self) -> Optional[float]:
        """Pace for running, speed for cycling."""
        if self.is_running:
            return self.pace_min_per_km
        return self.speed_km_per_h

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize to a JSON-compatible mapping.

        Derived fields are included so the stored copy is readable on its
        own. workout_from_dict recomputes them anyway.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "created_at": self.created_at.isoformat(),
            "coordinates": self.coordinates.as_list(),
            "distance_km": self.distance_km,
            "duration_min": self.duration_min,
            "description": self.description,
        }
        if self.is_running:
            data["cadence_spm"] = self.cadence_spm
            data["pace_min_per_km"] = self.pace_min_per_km
        else:
            data["elevation_gain_m"] = self.elevation_gain_m
            data["speed_km_per_h"] = self.speed_km_per_h
        return data


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def create_running(
    coordinates: Coordinates,
    distance_km: float,
    duration_min: float,
    cadence_spm: float,
    *,
    created_at: Optional[datetime] = None,
    workout_id: Optional[str] = None,
) -> Workout:
    """
    Build a running workout with its pace and description.

    Raises InvalidMetricError if any metric is missing, non-finite,
    or negative.
    """
    distance = _check_metric("distance", distance_km)
    duration = _check_metric("duration", duration_min)
    cadence = _check_metric("cadence", cadence_spm)
    created = created_at or _local_now()

    return Workout(
        kind=WorkoutKind.RUNNING,
        coordinates=coordinates,
        distance_km=distance,
        duration_min=duration,
        cadence_spm=cadence,
        pace_min_per_km=_ratio(duration, distance),
        description=build_description(WorkoutKind.RUNNING, created),
        id=workout_id or _new_workout_id(),
        created_at=created,
    )


def create_cycling(
    coordinates: Coordinates,
    distance_km: float,
    duration_min: float,
    elevation_gain_m: float,
    *,
    created_at: Optional[datetime] = None,
    workout_id: Optional[str] = None,
) -> Workout:
    """
    Build a cycling workout with its speed and description.

    Raises InvalidMetricError if any metric is missing, non-finite,
    or negative.
    """
    distance = _check_metric("distance", distance_km)
    duration = _check_metric("duration", duration_min)
    elevation = _check_metric("elevation gain", elevation_gain_m)
    created = created_at or _local_now()

    return Workout(
        kind=WorkoutKind.CYCLING,
        coordinates=coordinates,
        distance_km=distance,
        duration_min=duration,
        elevation_gain_m=elevation,
        speed_km_per_h=_ratio(distance, duration),
        description=build_description(WorkoutKind.CYCLING, created),
        id=workout_id or _new_workout_id(),
        created_at=created,
    )


def workout_from_dict(data: dict[str, Any]) -> Workout:
    """
    Rebuild a workout from its persisted mapping.

    The stored form has lost its type identity, so we dispatch on the
    `kind` discriminant and go back through the matching factory. The id,
    timestamp, and description are kept verbatim; derived metrics are
    recomputed from distance and duration.

    Raises KeyError, TypeError, or ValueError for structurally
    incompatible input. Callers that must fail soft catch these.
    """
    kind = WorkoutKind(data["kind"])
    latitude, longitude = data["coordinates"]
    coordinates = Coordinates(latitude=float(latitude), longitude=float(longitude))
    created_at = datetime.fromisoformat(data["created_at"])

    if kind == WorkoutKind.RUNNING:
        workout = create_running(
            coordinates,
            data["distance_km"],
            data["duration_min"],
            data["cadence_spm"],
            created_at=created_at,
            workout_id=str(data["id"]),
        )
    else:
        workout = create_cycling(
            coordinates,
            data["distance_km"],
            data["duration_min"],
            data["elevation_gain_m"],
            created_at=created_at,
            workout_id=str(data["id"]),
        )

    description = data.get("description")
    if isinstance(description, str) and description and description != workout.description:
        workout = replace(workout, description=description)
    return workout
