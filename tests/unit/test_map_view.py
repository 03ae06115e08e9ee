"""
Unit tests for the map view and map session.
"""

import pytest

from src.core.workouts.models import Coordinates, create_cycling, create_running
from src.core.workouts.store import WorkoutStore
from src.infrastructure.map.view import (
    MapSession,
    MapSessionError,
    MapStatus,
    MapView,
    UnknownMarkerError,
)
from src.infrastructure.persistence.workouts import WorkoutRepository
from src.infrastructure.storage.client import MockKeyValueStore


HOME = Coordinates(latitude=48.85, longitude=2.35)
NEW_YORK = Coordinates(latitude=40.7, longitude=-74.0)


class TestMapView:
    """Tests for marker placement and rendering."""

    def test_place_marker_uses_description_and_kind_popup(self):
        view = MapView(center=HOME)
        workout = create_cycling(NEW_YORK, 30, 60, 250)

        handle = view.place_marker(workout)

        marker = view.marker(handle)
        assert marker.workout_id == workout.id
        assert marker.popup_content == workout.description
        assert marker.popup.to_leaflet() == {
            "maxWidth": 250,
            "minWidth": 100,
            "autoClose": False,
            "closeOnEscapeKey": False,
            "closeOnClick": False,
            "className": "cycling-popup",
        }

    def test_remove_marker(self):
        view = MapView(center=HOME)
        handle = view.place_marker(create_running(NEW_YORK, 5, 25, 178))

        view.remove_marker(handle)

        assert view.markers == []

    def test_remove_unknown_marker_raises(self):
        with pytest.raises(UnknownMarkerError):
            MapView(center=HOME).remove_marker("nope")

    def test_pan_to_keeps_zoom(self):
        view = MapView(center=HOME, zoom=13)

        view.pan_to(NEW_YORK)

        assert view.center == NEW_YORK
        assert view.zoom == 13

    def test_geojson_uses_lng_lat_order(self):
        view = MapView(center=HOME)
        workout = create_running(NEW_YORK, 5, 25, 178)
        view.place_marker(workout)

        geojson = view.to_geojson()

        assert geojson["type"] == "FeatureCollection"
        feature = geojson["features"][0]
        assert feature["geometry"] == {"type": "Point", "coordinates": [-74.0, 40.7]}
        assert feature["properties"]["workout_id"] == workout.id


class TestMapSession:
    """The map loads once, or fails once."""

    def test_starts_pending(self):
        session = MapSession()

        assert session.status == MapStatus.PENDING
        assert session.view is None

    def test_load_creates_view_at_position(self):
        session = MapSession(zoom=11)

        view = session.load(HOME)

        assert session.status == MapStatus.READY
        assert view.center == HOME
        assert view.zoom == 11

    def test_failure_is_terminal(self):
        session = MapSession()
        session.fail()

        assert session.status == MapStatus.UNAVAILABLE
        assert session.failure_reason == "Could not get your position"
        with pytest.raises(MapSessionError):
            session.load(HOME)

    def test_cannot_load_twice(self):
        session = MapSession()
        session.load(HOME)

        with pytest.raises(MapSessionError):
            session.load(NEW_YORK)


class TestStoreWithMapView:
    """The real map view satisfies the store's marker binding."""

    def test_restored_workouts_get_pinned_when_map_loads(self):
        storage = MockKeyValueStore()
        repository = WorkoutRepository(storage)
        first = create_running(NEW_YORK, 5, 25, 178)
        second = create_cycling(HOME, 30, 60, 250)
        repository.save([first, second])
        store = WorkoutStore(persistence=repository)
        store.initialize()
        session = MapSession()

        store.attach_map(session.load(HOME))

        view = session.view
        assert [m.workout_id for m in view.markers] == [first.id, second.id]
        assert store.pending_marker_count == 0

        store.remove(first.id)
        assert [m.workout_id for m in view.markers] == [second.id]

        store.remove_all()
        assert view.markers == []
