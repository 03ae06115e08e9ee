"""
Map view state for workout markers.

Implements the MarkerBinding protocol from core.workouts.store.
"""

from .view import (
    MapSession,
    MapSessionError,
    MapStatus,
    MapView,
    Marker,
    PopupOptions,
    TileLayer,
    UnknownMarkerError,
)

__all__ = [
    "MapSession",
    "MapSessionError",
    "MapStatus",
    "MapView",
    "Marker",
    "PopupOptions",
    "TileLayer",
    "UnknownMarkerError",
]
