"""
Repository for the persisted workout log.

This module implements the repository pattern on top of a key-value slot.
The repository:
1. Translates between Workout objects and their JSON representation
2. Owns the slot key and the document layout (a JSON array)
3. Absorbs storage failures so callers never see them

Callers treat "nothing saved" and "saved data is unreadable" the same way:
as an empty workout log.
"""

import json
import logging
from typing import Any, Optional, Sequence

from src.core.workouts.models import Workout, workout_from_dict
from src.infrastructure.storage.client import KeyValueStore, StorageError


logger = logging.getLogger(__name__)


DEFAULT_STORAGE_KEY = "workouts"


class WorkoutRepository:
    """
    Repository for workout log persistence.

    Each method corresponds to something the workout store needs:
    - save: Overwrite the slot with the full workout list
    - load: Read the slot back as workouts
    - clear: Delete the slot outright
    - remove_index: Drop one entry from the stored list in place
    """

    def __init__(
        self,
        storage: KeyValueStore,
        key: str = DEFAULT_STORAGE_KEY,
    ) -> None:
        self._storage = storage
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def save(self, workouts: Sequence[Workout]) -> None:
        """
        Serialize every workout into the slot, replacing what was there.

        Derived fields (pace, speed, description) are written too, so the
        stored document stands on its own.
        """
        document = json.dumps(
            [workout.to_dict() for workout in workouts],
            allow_nan=False,
        )

        try:
            self._storage.set(self._key, document)
        except StorageError as e:
            logger.error(
                "Failed to save workouts",
                extra={"key": self._key, "count": len(workouts), "error": str(e)}
            )
            return

        logger.debug(
            "Saved workouts",
            extra={"key": self._key, "count": len(workouts)}
        )

    def load(self) -> list[Workout]:
        """
        Load workouts from the slot.

        Returns an empty list if the slot is absent, unreadable, or holds
        anything other than a list of well-formed workouts. Never raises.
        """
        entries = self._read_entries()
        if entries is None:
            return []

        workouts = []
        for position, entry in enumerate(entries):
            try:
                workouts.append(workout_from_dict(entry))
            except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as e:
                # One bad entry means the document isn't ours
                logger.warning(
                    "Stored workout is malformed, ignoring stored log",
                    extra={"key": self._key, "position": position, "error": str(e)}
                )
                return []

        return workouts

    def clear(self) -> None:
        """Delete the slot. An empty list is not written in its place."""
        try:
            self._storage.delete(self._key)
        except StorageError as e:
            logger.error(
                "Failed to clear workouts",
                extra={"key": self._key, "error": str(e)}
            )
            return

        logger.debug("Cleared workouts", extra={"key": self._key})

    def remove_index(
        self,
        index: int,
        remaining: Optional[Sequence[Workout]] = None,
    ) -> None:
        """
        Remove one entry from the stored list and write it back.

        Works on the stored document rather than re-serializing memory.
        Silently does nothing if the slot is absent or unreadable, or the
        index is out of range. Removing the last entry deletes the slot.

        If `remaining` (the in-memory list after the removal) is given, the
        spliced document must hold exactly those ids in that order. When it
        doesn't, because an earlier write failed, the slot is rewritten from
        `remaining` instead.
        """
        entries = self._read_entries()

        if entries is None or not 0 <= index < len(entries):
            if remaining is not None:
                self._replace_with(remaining)
                return
            logger.debug(
                "Nothing stored at workout index",
                extra={"key": self._key, "index": index}
            )
            return

        del entries[index]

        if remaining is not None and _entry_ids(entries) != [w.id for w in remaining]:
            logger.warning(
                "Stored workouts out of step with memory, rewriting slot",
                extra={"key": self._key, "stored": len(entries), "count": len(remaining)}
            )
            self._replace_with(remaining)
            return

        if not entries:
            # Last entry gone: same end state as clear()
            self.clear()
            return

        try:
            self._storage.set(self._key, json.dumps(entries, allow_nan=False))
        except StorageError as e:
            logger.error(
                "Failed to remove stored workout",
                extra={"key": self._key, "index": index, "error": str(e)}
            )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _replace_with(self, workouts: Sequence[Workout]) -> None:
        if workouts:
            self.save(workouts)
        else:
            self.clear()

    def _read_entries(self) -> Optional[list[Any]]:
        """
        Read the slot as a JSON list.

        Returns None for an absent slot, a storage failure, invalid JSON,
        or a document that isn't a list.
        """
        try:
            raw = self._storage.get(self._key)
        except StorageError as e:
            logger.error(
                "Failed to read workouts",
                extra={"key": self._key, "error": str(e)}
            )
            return None

        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.warning(
                "Stored workouts are not valid JSON",
                extra={"key": self._key, "raw": raw[:100], "error": str(e)}
            )
            return None

        if not isinstance(data, list):
            logger.warning(
                "Stored workouts are not a list",
                extra={"key": self._key, "type": type(data).__name__}
            )
            return None

        return data


def _entry_ids(entries: list[Any]) -> list[Any]:
    return [entry.get("id") if isinstance(entry, dict) else None for entry in entries]
