"""
Server-side map state for the workout markers.

The browser draws the map with Leaflet; this module keeps the state that
drawing needs: where the map is centered, which markers exist, and how
their popups look. It implements the MarkerBinding protocol from
core.workouts.store, so the store can pin and unpin workouts without
knowing anything about Leaflet.

A map only exists once the user's position is known. MapSession tracks
that one-shot transition: PENDING until a position is reported, then
READY, or UNAVAILABLE for the rest of the process if locating failed.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from src.core.workouts.models import Coordinates, Workout

logger = logging.getLogger(__name__)


class MapStatus(Enum):
    PENDING = "pending"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class MapSessionError(Exception):
    """Raised when a map session transition isn't allowed."""
    pass


class UnknownMarkerError(Exception):
    """Raised when removing a marker handle the map never issued."""
    pass


@dataclass(frozen=True)
class TileLayer:
    """The base tile layer the front end should load."""
    url_template: str = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
    attribution: str = (
        '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors'
    )


@dataclass(frozen=True)
class PopupOptions:
    """
    Leaflet popup options for a workout marker.

    Popups stay open: they don't close on map click, on Escape, or when
    another popup opens. The class name selects the kind's color.
    """
    class_name: str
    max_width: int = 250
    min_width: int = 100
    auto_close: bool = False
    close_on_escape_key: bool = False
    close_on_click: bool = False

    def to_leaflet(self) -> dict[str, Any]:
        return {
            "maxWidth": self.max_width,
            "minWidth": self.min_width,
            "autoClose": self.auto_close,
            "closeOnEscapeKey": self.close_on_escape_key,
            "closeOnClick": self.close_on_click,
            "className": self.class_name,
        }


@dataclass(frozen=True)
class Marker:
    """A placed marker. The handle is what the workout store keeps."""
    handle: str
    workout_id: str
    coordinates: Coordinates
    popup_content: str
    popup: PopupOptions

    def to_feature(self) -> dict[str, Any]:
        """GeoJSON Feature; note GeoJSON orders positions [lng, lat]."""
        return {
            "type": "Feature",
            "id": self.handle,
            "geometry": {
                "type": "Point",
                "coordinates": [self.coordinates.longitude, self.coordinates.latitude],
            },
            "properties": {
                "workout_id": self.workout_id,
                "popup_content": self.popup_content,
                "popup_options": self.popup.to_leaflet(),
            },
        }


@dataclass
class MapView:
    """
    A loaded map: its view and its markers.

    Markers are kept in placement order, which is also the order they
    are drawn in.
    """
    center: Coordinates
    zoom: int = 13
    tile_layer: TileLayer = field(default_factory=TileLayer)
    _markers: dict[str, Marker] = field(default_factory=dict, repr=False)

    # MarkerBinding -------------------------------------------------------

    def place_marker(self, workout: Workout) -> str:
        """Place a marker with an open popup showing the description."""
        marker = Marker(
            handle=uuid4().hex,
            workout_id=workout.id,
            coordinates=workout.coordinates,
            popup_content=workout.description,
            popup=PopupOptions(class_name=f"{workout.kind.value}-popup"),
        )
        self._markers[marker.handle] = marker

        logger.debug(
            "Placed marker",
            extra={"workout_id": workout.id, "handle": marker.handle}
        )

        return marker.handle

    def remove_marker(self, handle: str) -> None:
        if handle not in self._markers:
            raise UnknownMarkerError(f"Marker {handle} is not on this map")
        del self._markers[handle]

    def pan_to(self, coordinates: Coordinates) -> None:
        """Re-center on coordinates, keeping the current zoom."""
        self.set_view(coordinates, self.zoom)

    # ---------------------------------------------------------------------

    def set_view(self, center: Coordinates, zoom: int) -> None:
        self.center = center
        self.zoom = zoom

    @property
    def markers(self) -> list[Marker]:
        return list(self._markers.values())

    def marker(self, handle: str) -> Optional[Marker]:
        return self._markers.get(handle)

    def to_geojson(self) -> dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [marker.to_feature() for marker in self._markers.values()],
        }


class MapSession:
    """
    Tracks whether a map exists for this process.

    The transition out of PENDING happens once. After a failed locate
    the session stays UNAVAILABLE: there are no retries.
    """

    def __init__(
        self,
        zoom: int = 13,
        tile_layer: Optional[TileLayer] = None,
    ) -> None:
        self._zoom = zoom
        self._tile_layer = tile_layer or TileLayer()
        self._status = MapStatus.PENDING
        self._view: Optional[MapView] = None
        self._failure_reason: Optional[str] = None

    @property
    def status(self) -> MapStatus:
        return self._status

    @property
    def view(self) -> Optional[MapView]:
        return self._view

    @property
    def failure_reason(self) -> Optional[str]:
        return self._failure_reason

    def load(self, position: Coordinates) -> MapView:
        """Create the map centered on the user's position."""
        if self._status != MapStatus.PENDING:
            raise MapSessionError(f"Map is already {self._status.value}")

        self._view = MapView(center=position, zoom=self._zoom, tile_layer=self._tile_layer)
        self._status = MapStatus.READY

        logger.info(
            "Map loaded",
            extra={"latitude": position.latitude, "longitude": position.longitude}
        )

        return self._view

    def fail(self, reason: str = "Could not get your position") -> None:
        """Record that the position couldn't be determined."""
        if self._status != MapStatus.PENDING:
            raise MapSessionError(f"Map is already {self._status.value}")

        self._status = MapStatus.UNAVAILABLE
        self._failure_reason = reason

        logger.warning("Map unavailable", extra={"reason": reason})
