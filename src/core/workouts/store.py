"""
Workout state management.

WorkoutStore owns the authoritative list of workouts for a session and the
parallel list of map markers. It's framework-agnostic: the map and the
durable storage are reached only through the protocols below, injected at
construction.

The two lists are index-aligned. markers[i] is the marker for records[i],
or None while that marker is pending (the map isn't ready yet). Every
mutation touches both lists together, so their lengths always match.
"""

import logging
from typing import Any, Callable, Iterator, Optional, Protocol, Sequence

from .models import Coordinates, Workout

logger = logging.getLogger(__name__)


MarkerHandle = Any


class MapUnavailableError(Exception):
    """Raised when a map operation is requested but no map is attached."""
    pass


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class MarkerBinding(Protocol):
    """
    Interface for the map that displays workout markers.

    The store doesn't know whether markers end up in a Leaflet page,
    a GeoJSON document, or a test double. It only needs to place one,
    get a handle back, and remove it later by that handle.
    """

    def place_marker(self, workout: Workout) -> MarkerHandle:
        """Place a labeled marker for the workout and return its handle."""
        ...

    def remove_marker(self, handle: MarkerHandle) -> None:
        """Remove a previously placed marker."""
        ...

    def pan_to(self, coordinates: Coordinates) -> None:
        """Re-center the map on a coordinate."""
        ...


class WorkoutPersistence(Protocol):
    """
    Interface for the durable copy of the workout list.

    Implementations absorb their own storage errors. load() returns an
    empty list for both "nothing saved" and "saved data is unreadable".
    remove_index() gets the list as it stands after the removal, so it can
    rewrite the slot when the stored copy has fallen behind.
    """

    def save(self, workouts: Sequence[Workout]) -> None: ...
    def load(self) -> list[Workout]: ...
    def clear(self) -> None: ...
    def remove_index(
        self, index: int, remaining: Optional[Sequence[Workout]] = None
    ) -> None: ...


PlaceMarkerFn = Callable[[Workout], MarkerHandle]


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class WorkoutStore:
    """
    The in-memory workout log for one session.

    Each public method corresponds to something the user can do:
    log a workout, remove one, clear everything, or jump to a marker.
    Mutations write through to persistence immediately.
    """

    def __init__(
        self,
        persistence: WorkoutPersistence,
        map_binding: Optional[MarkerBinding] = None,
    ) -> None:
        self._persistence = persistence
        self._map = map_binding
        self._records: list[Workout] = []
        self._markers: list[Optional[MarkerHandle]] = []

    # -----------------------------------------------------------------------
    # Read access
    # -----------------------------------------------------------------------

    @property
    def records(self) -> tuple[Workout, ...]:
        return tuple(self._records)

    @property
    def markers(self) -> tuple[Optional[MarkerHandle], ...]:
        return tuple(self._markers)

    @property
    def has_map(self) -> bool:
        return self._map is not None

    @property
    def pending_marker_count(self) -> int:
        return sum(1 for marker in self._markers if marker is None)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Workout]:
        return iter(list(self._records))

    def newest_first(self) -> list[Workout]:
        """Workouts in list-rendering order: most recently logged on top."""
        return list(reversed(self._records))

    def newest_first_with_markers(self) -> list[tuple[Workout, Optional[MarkerHandle]]]:
        """Like newest_first(), paired with each workout's marker handle."""
        return list(reversed(list(zip(self._records, self._markers))))

    def find_by_id(self, workout_id: str) -> Optional[Workout]:
        index = self._index_of(workout_id)
        if index is None:
            return None
        return self._records[index]

    def marker_for(self, workout_id: str) -> Optional[MarkerHandle]:
        """The workout's marker handle; None if unknown or still pending."""
        index = self._index_of(workout_id)
        if index is None:
            return None
        return self._markers[index]

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def initialize(self) -> int:
        """
        Restore persisted workouts into memory.

        Restored workouts have no marker yet. Their markers are placed
        when a map is attached, one per workout, in original order.
        Returns the number of workouts restored.
        """
        restored = self._persistence.load()

        for workout in restored:
            self._records.append(workout)
            self._markers.append(None)

        logger.info(
            "Restored workouts from storage",
            extra={"count": len(restored)}
        )

        if self._map is not None:
            self._place_pending_markers()

        return len(restored)

    def attach_map(self, map_binding: MarkerBinding) -> int:
        """
        Attach the map once it's ready and place every pending marker.

        Returns the number of markers placed.
        """
        if map_binding is None:
            raise MapUnavailableError("No map to attach")

        self._map = map_binding
        placed = self._place_pending_markers()

        logger.info(
            "Map attached to workout store",
            extra={"markers_placed": placed, "workouts": len(self._records)}
        )

        return placed

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    def add(
        self,
        workout: Workout,
        place_marker: Optional[PlaceMarkerFn] = None,
    ) -> None:
        """
        Append a workout, place its marker, and persist.

        The marker comes from place_marker if given, otherwise from the
        attached map. Without either, the marker stays pending. If marker
        placement raises, nothing is committed and the error propagates.
        """
        if self._index_of(workout.id) is not None:
            raise ValueError(f"Workout {workout.id} is already in the store")

        marker = self._obtain_marker(workout, place_marker)

        self._records.append(workout)
        self._markers.append(marker)

        logger.info(
            "Added workout",
            extra={
                "workout_id": workout.id,
                "kind": workout.kind.value,
                "marker_pending": marker is None,
            }
        )

        self.persist()

    def remove(self, workout_id: str) -> bool:
        """
        Remove one workout and its marker.

        Returns False if no workout has that id. An unknown id is treated
        as already removed, so nothing changes and nothing is raised.
        """
        index = self._index_of(workout_id)
        if index is None:
            logger.debug(
                "Remove requested for unknown workout",
                extra={"workout_id": workout_id}
            )
            return False

        marker = self._markers[index]
        if marker is not None and self._map is not None:
            self._map.remove_marker(marker)

        del self._records[index]
        del self._markers[index]

        self._persistence.remove_index(index, self._records)

        logger.info(
            "Removed workout",
            extra={"workout_id": workout_id, "index": index}
        )

        return True

    def remove_all(self) -> None:
        """
        Remove every workout and marker, and delete the persisted slot.

        The log is cleared even if the map fails to remove a marker; the
        first such error is raised afterwards.
        """
        failures = []
        if self._map is not None:
            for marker in self._markers:
                if marker is None:
                    continue
                try:
                    self._map.remove_marker(marker)
                except Exception as e:
                    logger.warning(
                        "Failed to remove marker",
                        extra={"handle": str(marker), "error": str(e)}
                    )
                    failures.append(e)

        count = len(self._records)
        self._records.clear()
        self._markers.clear()

        self._persistence.clear()

        logger.info("Removed all workouts", extra={"count": count})

        if failures:
            raise failures[0]

    def persist(self) -> None:
        """Write the full in-memory list to durable storage."""
        self._persistence.save(self._records)

    # -----------------------------------------------------------------------
    # Map interaction
    # -----------------------------------------------------------------------

    def move_to_marker(self, workout_id: str) -> bool:
        """
        Pan the map to a workout's marker.

        Returns False if the workout doesn't exist or there's no map.
        """
        workout = self.find_by_id(workout_id)
        if workout is None or self._map is None:
            return False

        self._map.pan_to(workout.coordinates)
        return True

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _index_of(self, workout_id: str) -> Optional[int]:
        for index, workout in enumerate(self._records):
            if workout.id == workout_id:
                return index
        return None

    def _obtain_marker(
        self,
        workout: Workout,
        place_marker: Optional[PlaceMarkerFn],
    ) -> Optional[MarkerHandle]:
        if place_marker is not None:
            return place_marker(workout)
        if self._map is not None:
            return self._map.place_marker(workout)
        return None

    def _place_pending_markers(self) -> int:
        placed = 0
        for index, workout in enumerate(self._records):
            if self._markers[index] is None:
                self._markers[index] = self._map.place_marker(workout)
                placed += 1
        return placed
