"""
Map session endpoints.

The browser resolves the user's position and reports the outcome here.
A reported position loads the map and pins every workout logged so far;
a reported failure disables map features for the rest of the process.
The workout list keeps working either way.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ...core.workouts.models import Coordinates
from ...core.workouts.store import WorkoutStore
from ...infrastructure.map.view import MapSession, MapSessionError
from ..dependencies import MapSessionDep, WorkoutStoreDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class PositionReport(BaseModel):
    """The user's position, as the browser resolved it."""
    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)


class PositionFailure(BaseModel):
    """The browser couldn't determine a position."""
    reason: str = Field(default="Could not get your position", max_length=500)


class MapStateResponse(BaseModel):
    """Everything the front end needs to draw the map."""
    status: str = Field(description="pending, ready, or unavailable")
    center: list[float] | None = Field(None, description="[lat, lng]")
    zoom: int | None = None
    tile_url: str | None = None
    tile_attribution: str | None = None
    markers: dict[str, Any] = Field(
        default_factory=lambda: {"type": "FeatureCollection", "features": []},
        description="Workout markers as a GeoJSON FeatureCollection",
    )
    pending_markers: int = Field(0, description="Workouts waiting for the map")
    failure_reason: str | None = None


def build_map_state(map_session: MapSession, store: WorkoutStore) -> MapStateResponse:
    view = map_session.view
    if view is None:
        return MapStateResponse(
            status=map_session.status.value,
            pending_markers=store.pending_marker_count,
            failure_reason=map_session.failure_reason,
        )

    return MapStateResponse(
        status=map_session.status.value,
        center=view.center.as_list(),
        zoom=view.zoom,
        tile_url=view.tile_layer.url_template,
        tile_attribution=view.tile_layer.attribution,
        markers=view.to_geojson(),
        pending_markers=store.pending_marker_count,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=MapStateResponse,
    summary="Get map state",
)
async def get_map_state(
    map_session: MapSessionDep,
    store: WorkoutStoreDep,
) -> MapStateResponse:
    return build_map_state(map_session, store)


@router.post(
    "/position",
    response_model=MapStateResponse,
    summary="Report the user's position",
    description="Loads the map centered on the position and pins pending workouts",
)
async def report_position(
    report: PositionReport,
    map_session: MapSessionDep,
    store: WorkoutStoreDep,
) -> MapStateResponse:
    try:
        view = map_session.load(
            Coordinates(latitude=report.latitude, longitude=report.longitude)
        )
    except MapSessionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    store.attach_map(view)

    return build_map_state(map_session, store)


@router.post(
    "/position/failure",
    response_model=MapStateResponse,
    summary="Report that the position is unavailable",
)
async def report_position_failure(
    failure: PositionFailure,
    map_session: MapSessionDep,
    store: WorkoutStoreDep,
) -> MapStateResponse:
    try:
        map_session.fail(failure.reason)
    except MapSessionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return build_map_state(map_session, store)
