"""
Unit tests for the workout store.

The store is exercised with the real repository over in-memory storage,
and a small recording map in place of the browser map.
"""

import json
from datetime import datetime, timezone

import pytest

from src.core.workouts.models import Coordinates, WorkoutKind, create_cycling, create_running
from src.core.workouts.store import MapUnavailableError, WorkoutStore
from src.infrastructure.persistence.workouts import WorkoutRepository
from src.infrastructure.storage.client import MockKeyValueStore, StorageError


NEW_YORK = Coordinates(latitude=40.7, longitude=-74.0)
LONDON = Coordinates(latitude=51.5, longitude=-0.12)


class RecordingMap:
    """Map double that hands out numbered handles and records calls."""

    def __init__(self, fail_on_place: bool = False) -> None:
        self.fail_on_place = fail_on_place
        self.placed: dict[str, str] = {}
        self.removed: list[str] = []
        self.panned_to: list[Coordinates] = []
        self._counter = 0

    def place_marker(self, workout):
        if self.fail_on_place:
            raise RuntimeError("map exploded")
        self._counter += 1
        handle = f"marker-{self._counter}"
        self.placed[handle] = workout.id
        return handle

    def remove_marker(self, handle):
        self.removed.append(handle)
        del self.placed[handle]

    def pan_to(self, coordinates):
        self.panned_to.append(coordinates)


class FlakyStorage(MockKeyValueStore):
    """In-memory storage whose writes fail while `failing` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.failing = False

    def set(self, key, value):
        if self.failing:
            raise StorageError("disk full")
        super().set(key, value)


@pytest.fixture
def storage() -> MockKeyValueStore:
    return MockKeyValueStore()


@pytest.fixture
def repository(storage) -> WorkoutRepository:
    return WorkoutRepository(storage)


@pytest.fixture
def map_binding() -> RecordingMap:
    return RecordingMap()


@pytest.fixture
def store(repository, map_binding) -> WorkoutStore:
    store = WorkoutStore(persistence=repository, map_binding=map_binding)
    store.initialize()
    return store


def stored_ids(storage) -> list[str]:
    raw = storage.get("workouts")
    return [entry["id"] for entry in json.loads(raw)]


def assert_aligned(store: WorkoutStore) -> None:
    assert len(store.records) == len(store.markers)


# ---------------------------------------------------------------------------
# Add
# ---------------------------------------------------------------------------

class TestAdd:
    """Tests for logging a workout."""

    def test_add_places_marker_and_persists(self, store, storage, map_binding):
        workout = create_running(NEW_YORK, 5, 25, 178)

        store.add(workout)

        assert store.records == (workout,)
        assert store.markers == ("marker-1",)
        assert map_binding.placed == {"marker-1": workout.id}
        assert stored_ids(storage) == [workout.id]

    def test_add_keeps_insertion_order(self, store, storage):
        first = create_running(NEW_YORK, 5, 25, 178)
        second = create_cycling(LONDON, 30, 60, 250)

        store.add(first)
        store.add(second)

        assert [w.id for w in store.records] == [first.id, second.id]
        assert stored_ids(storage) == [first.id, second.id]

    def test_newest_first_reverses_insertion_order(self, store):
        first = create_running(NEW_YORK, 5, 25, 178)
        second = create_cycling(LONDON, 30, 60, 250)
        store.add(first)
        store.add(second)

        assert store.newest_first() == [second, first]

    def test_newest_first_with_markers_pairs_each_handle(self, repository):
        store = WorkoutStore(persistence=repository)
        first = create_running(NEW_YORK, 5, 25, 178)
        second = create_cycling(LONDON, 30, 60, 250)
        store.add(first, place_marker=lambda w: "pinned")
        store.add(second)

        assert store.newest_first_with_markers() == [(second, None), (first, "pinned")]

    def test_explicit_place_marker_wins(self, store, map_binding):
        workout = create_running(NEW_YORK, 5, 25, 178)

        store.add(workout, place_marker=lambda w: f"custom-{w.id}")

        assert store.markers == (f"custom-{workout.id}",)
        assert map_binding.placed == {}

    def test_failed_marker_placement_commits_nothing(self, repository, storage):
        store = WorkoutStore(persistence=repository, map_binding=RecordingMap(fail_on_place=True))

        with pytest.raises(RuntimeError, match="map exploded"):
            store.add(create_running(NEW_YORK, 5, 25, 178))

        assert len(store) == 0
        assert_aligned(store)
        assert storage.get("workouts") is None

    def test_without_map_marker_is_pending(self, repository, storage):
        store = WorkoutStore(persistence=repository)
        workout = create_running(NEW_YORK, 5, 25, 178)

        store.add(workout)

        assert store.markers == (None,)
        assert store.pending_marker_count == 1
        assert stored_ids(storage) == [workout.id]

    def test_rejects_duplicate_id(self, store):
        workout = create_running(NEW_YORK, 5, 25, 178)
        store.add(workout)

        with pytest.raises(ValueError, match="already"):
            store.add(workout)

        assert len(store) == 1
        assert_aligned(store)


# ---------------------------------------------------------------------------
# Remove
# ---------------------------------------------------------------------------

class TestRemove:
    """Tests for removing a single workout."""

    def test_remove_drops_record_marker_and_stored_entry(self, store, storage, map_binding):
        first = create_running(NEW_YORK, 5, 25, 178)
        second = create_cycling(LONDON, 30, 60, 250)
        third = create_running(LONDON, 10, 55, 170)
        for workout in (first, second, third):
            store.add(workout)

        assert store.remove(second.id) is True

        assert [w.id for w in store.records] == [first.id, third.id]
        assert store.markers == ("marker-1", "marker-3")
        assert map_binding.removed == ["marker-2"]
        assert stored_ids(storage) == [first.id, third.id]
        assert_aligned(store)

    def test_remove_unknown_id_changes_nothing(self, store, storage, map_binding):
        workout = create_running(NEW_YORK, 5, 25, 178)
        store.add(workout)
        before = storage.get("workouts")

        assert store.remove("does-not-exist") is False

        assert store.records == (workout,)
        assert store.markers == ("marker-1",)
        assert map_binding.removed == []
        assert storage.get("workouts") == before

    def test_remove_pending_workout_skips_map(self, repository, storage):
        store = WorkoutStore(persistence=repository)
        workout = create_running(NEW_YORK, 5, 25, 178)
        store.add(workout)

        assert store.remove(workout.id) is True
        assert len(store) == 0
        assert "workouts" not in storage

    def test_remove_after_failed_save_leaves_slot_matching_memory(self):
        storage = FlakyStorage()
        repository = WorkoutRepository(storage)
        store = WorkoutStore(persistence=repository, map_binding=RecordingMap())
        first = create_running(NEW_YORK, 5, 25, 178)
        second = create_cycling(LONDON, 30, 60, 250)
        store.add(first)
        storage.failing = True
        store.add(second)
        storage.failing = False

        store.remove(first.id)

        assert [w.id for w in store.records] == [second.id]
        assert [w.id for w in repository.load()] == [second.id]

    def test_remove_after_failed_save_of_last_workout(self):
        storage = FlakyStorage()
        repository = WorkoutRepository(storage)
        store = WorkoutStore(persistence=repository, map_binding=RecordingMap())
        first = create_running(NEW_YORK, 5, 25, 178)
        second = create_cycling(LONDON, 30, 60, 250)
        store.add(first)
        storage.failing = True
        store.add(second)
        storage.failing = False

        store.remove(second.id)

        assert [w.id for w in repository.load()] == [first.id]


class TestRemoveAll:
    """Tests for clearing the whole log."""

    def test_remove_all_clears_everything_and_deletes_slot(self, store, storage, map_binding):
        store.add(create_running(NEW_YORK, 5, 25, 178))
        store.add(create_cycling(LONDON, 30, 60, 250))

        store.remove_all()

        assert store.records == ()
        assert store.markers == ()
        assert map_binding.placed == {}
        assert sorted(map_binding.removed) == ["marker-1", "marker-2"]
        assert "workouts" not in storage

    def test_remove_all_on_empty_store(self, store, storage):
        store.remove_all()

        assert len(store) == 0
        assert "workouts" not in storage

    def test_marker_failure_still_clears_the_log(self, store, storage, map_binding):
        store.add(create_running(NEW_YORK, 5, 25, 178))
        store.add(create_cycling(LONDON, 30, 60, 250))
        store.add(create_running(LONDON, 10, 55, 170))
        # marker-2 disappears from the map behind the store's back
        del map_binding.placed["marker-2"]

        with pytest.raises(KeyError):
            store.remove_all()

        assert store.records == ()
        assert store.markers == ()
        assert map_binding.placed == {}
        assert "workouts" not in storage

        store.remove_all()


class TestAlignment:
    """records and markers stay the same length through any sequence."""

    def test_lengths_match_after_every_operation(self, store):
        workouts = [create_running(NEW_YORK, i + 1, 30, 170) for i in range(5)]

        for workout in workouts:
            store.add(workout)
            assert_aligned(store)

        store.remove(workouts[2].id)
        assert_aligned(store)
        store.remove("missing")
        assert_aligned(store)
        store.remove(workouts[0].id)
        assert_aligned(store)
        store.add(create_cycling(LONDON, 20, 40, 100))
        assert_aligned(store)
        store.remove_all()
        assert_aligned(store)


# ---------------------------------------------------------------------------
# Initialize / Map attach
# ---------------------------------------------------------------------------

class TestInitialize:
    """Tests for restoring the persisted log."""

    def test_restores_persisted_workouts_without_markers(self, repository):
        first = create_running(NEW_YORK, 5, 25, 178)
        second = create_cycling(LONDON, 30, 60, 250)
        repository.save([first, second])

        store = WorkoutStore(persistence=repository)
        restored = store.initialize()

        assert restored == 2
        assert [w.id for w in store.records] == [first.id, second.id]
        assert [w.kind for w in store.records] == [WorkoutKind.RUNNING, WorkoutKind.CYCLING]
        assert store.markers == (None, None)

    def test_corrupt_storage_starts_empty(self, storage, repository):
        storage.set("workouts", "{not json")

        store = WorkoutStore(persistence=repository)

        assert store.initialize() == 0
        assert len(store) == 0

    def test_attach_map_places_pending_markers_in_order(self, repository):
        first = create_running(NEW_YORK, 5, 25, 178)
        second = create_cycling(LONDON, 30, 60, 250)
        repository.save([first, second])
        store = WorkoutStore(persistence=repository)
        store.initialize()
        map_binding = RecordingMap()

        placed = store.attach_map(map_binding)

        assert placed == 2
        assert store.markers == ("marker-1", "marker-2")
        assert map_binding.placed == {"marker-1": first.id, "marker-2": second.id}

    def test_attach_map_leaves_placed_markers_alone(self, repository):
        store = WorkoutStore(persistence=repository)
        store.add(create_running(NEW_YORK, 5, 25, 178), place_marker=lambda w: "early")
        store.add(create_running(LONDON, 5, 25, 178))

        placed = store.attach_map(RecordingMap())

        assert placed == 1
        assert store.markers == ("early", "marker-1")

    def test_initialize_with_map_places_markers(self, repository, map_binding):
        repository.save([create_running(NEW_YORK, 5, 25, 178)])
        store = WorkoutStore(persistence=repository, map_binding=map_binding)

        store.initialize()

        assert store.markers == ("marker-1",)


class TestLookup:
    """Tests for finding workouts and jumping to them."""

    def test_find_by_id(self, store):
        workout = create_running(NEW_YORK, 5, 25, 178)
        store.add(workout)

        assert store.find_by_id(workout.id) is workout
        assert store.find_by_id("nope") is None

    def test_move_to_marker_pans_map(self, store, map_binding):
        workout = create_cycling(LONDON, 30, 60, 250)
        store.add(workout)

        assert store.move_to_marker(workout.id) is True
        assert map_binding.panned_to == [LONDON]

    def test_move_to_marker_without_map(self, repository):
        store = WorkoutStore(persistence=repository)
        workout = create_running(NEW_YORK, 5, 25, 178)
        store.add(workout)

        assert store.move_to_marker(workout.id) is False

    def test_move_to_unknown_marker(self, store, map_binding):
        assert store.move_to_marker("nope") is False
        assert map_binding.panned_to == []

    def test_marker_for(self, store):
        workout = create_running(NEW_YORK, 5, 25, 178)
        store.add(workout)

        assert store.marker_for(workout.id) == "marker-1"
        assert store.marker_for("nope") is None


class TestMapUnavailable:

    def test_attaching_no_map_is_rejected(self, repository):
        store = WorkoutStore(persistence=repository)

        with pytest.raises(MapUnavailableError):
            store.attach_map(None)


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------

class TestEndToEnd:

    def test_add_then_remove_running_workout(self, storage):
        """Log one run, check everything, remove it, check it's all gone."""
        repository = WorkoutRepository(storage)
        map_binding = RecordingMap()
        store = WorkoutStore(persistence=repository, map_binding=map_binding)
        assert store.initialize() == 0

        workout = create_running(
            Coordinates(40.7, -74.0), 5, 25, 178,
            created_at=datetime(2026, 4, 14, tzinfo=timezone.utc),
        )
        store.add(workout)

        assert len(store.records) == 1
        assert store.records[0].pace_min_per_km == 5.0
        assert len(map_binding.placed) == 1
        stored = json.loads(storage.get("workouts"))
        assert len(stored) == 1
        assert stored[0]["id"] == workout.id
        assert stored[0]["pace_min_per_km"] == 5.0

        assert store.remove(workout.id) is True

        assert store.records == ()
        assert store.markers == ()
        assert map_binding.placed == {}
        assert "workouts" not in storage
