"""
Workout API endpoints.

These endpoints are the form and list behind the map page:
- Submit the workout form for a clicked map point
- List logged workouts for the sidebar
- Remove one workout, or clear the whole log
- Jump the map to a workout's marker

Input is validated here, before a workout is built. Invalid metrics are
reported back as a notice and nothing is stored.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Response, status
from pydantic import BaseModel, Field

from ...core.workouts.models import (
    Coordinates,
    InvalidMetricError,
    Workout,
    create_cycling,
    create_running,
)
from ...core.workouts.store import MarkerHandle
from ..dependencies import MapSessionDep, WorkoutStoreDep
from .map import MapStateResponse, build_map_state

logger = logging.getLogger(__name__)

router = APIRouter()


INVALID_INPUT_NOTICE = "Inputs have to be positive numbers"


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class WorkoutForm(BaseModel):
    """The workout form, submitted for the point the user clicked."""
    type: Literal["running", "cycling"] = Field(description="Workout type")
    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)
    distance: float = Field(description="Distance in km", ge=0, allow_inf_nan=False)
    duration: float = Field(description="Duration in minutes", ge=0, allow_inf_nan=False)
    cadence: Optional[float] = Field(
        None, description="Steps per minute (running)", ge=0, allow_inf_nan=False
    )
    elevation_gain: Optional[float] = Field(
        None, description="Elevation gain in meters (cycling)", ge=0, allow_inf_nan=False
    )


class WorkoutResponse(BaseModel):
    """A logged workout as the list and the map show it."""
    id: str
    type: str
    description: str
    created_at: str = Field(description="When the workout was logged (ISO format)")
    latitude: float
    longitude: float
    distance: float = Field(description="km")
    duration: float = Field(description="min")
    cadence: float | None = Field(None, description="spm, running only")
    pace: float | None = Field(None, description="min/km, running only")
    elevation_gain: float | None = Field(None, description="m, cycling only")
    speed: float | None = Field(None, description="km/h, cycling only")
    marker_pending: bool = Field(description="True until the map is ready to pin it")


class WorkoutListResponse(BaseModel):
    """Workouts in list order: newest first."""
    count: int
    workouts: list[WorkoutResponse]


def to_response(workout: Workout, marker: Optional[MarkerHandle]) -> WorkoutResponse:
    return WorkoutResponse(
        id=workout.id,
        type=workout.kind.value,
        description=workout.description,
        created_at=workout.created_at.isoformat(),
        latitude=workout.coordinates.latitude,
        longitude=workout.coordinates.longitude,
        distance=workout.distance_km,
        duration=workout.duration_min,
        cadence=workout.cadence_spm,
        pace=workout.pace_min_per_km,
        elevation_gain=workout.elevation_gain_m,
        speed=workout.speed_km_per_h,
        marker_pending=marker is None,
    )


def build_workout(form: WorkoutForm) -> Workout:
    """Build the workout the form describes; raises InvalidMetricError."""
    coordinates = Coordinates(latitude=form.latitude, longitude=form.longitude)

    if form.type == "running":
        return create_running(coordinates, form.distance, form.duration, form.cadence)
    return create_cycling(coordinates, form.distance, form.duration, form.elevation_gain)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=WorkoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Log a workout",
    description="Submit the workout form for a point clicked on the map",
)
async def create_workout(form: WorkoutForm, store: WorkoutStoreDep) -> WorkoutResponse:
    """
    Log a new workout.

    The workout is pinned on the map right away if the map is loaded;
    otherwise its marker stays pending until the map is ready.
    """
    try:
        workout = build_workout(form)
    except InvalidMetricError as e:
        logger.info(
            "Rejected workout form",
            extra={"type": form.type, "error": str(e)}
        )
        raise HTTPException(
            status_code=422,
            detail=f"{INVALID_INPUT_NOTICE}: {e}",
        )

    store.add(workout)

    return to_response(workout, store.marker_for(workout.id))


@router.get(
    "",
    response_model=WorkoutListResponse,
    summary="List workouts",
)
async def list_workouts(store: WorkoutStoreDep) -> WorkoutListResponse:
    workouts = [
        to_response(workout, marker)
        for workout, marker in store.newest_first_with_markers()
    ]
    return WorkoutListResponse(count=len(workouts), workouts=workouts)


@router.get(
    "/{workout_id}",
    response_model=WorkoutResponse,
    summary="Get a workout",
)
async def get_workout(workout_id: str, store: WorkoutStoreDep) -> WorkoutResponse:
    workout = store.find_by_id(workout_id)
    if workout is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workout {workout_id} not found",
        )
    return to_response(workout, store.marker_for(workout.id))


@router.delete(
    "/{workout_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a workout",
    description="Removes the workout and its marker. 404 means it was already gone.",
)
async def delete_workout(workout_id: str, store: WorkoutStoreDep) -> Response:
    if not store.remove(workout_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workout {workout_id} not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove all workouts",
)
async def delete_all_workouts(store: WorkoutStoreDep) -> Response:
    store.remove_all()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{workout_id}/focus",
    response_model=MapStateResponse,
    summary="Move the map to a workout",
    description="Pans the map to the workout's marker, as clicking it in the list does",
)
async def focus_workout(
    workout_id: str,
    store: WorkoutStoreDep,
    map_session: MapSessionDep,
) -> MapStateResponse:
    if store.find_by_id(workout_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workout {workout_id} not found",
        )

    if not store.move_to_marker(workout_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Map is not loaded",
        )

    return build_map_state(map_session, store)
