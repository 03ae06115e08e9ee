"""
FastAPI dependency injection.

Dependencies provide the storage client, the workout store, and the map
session to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests via app.dependency_overrides
- Configuration is centralized

The workout log is one session's state, so the store and the map session
are created once per process and shared across requests.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.workouts.store import WorkoutStore
from ..infrastructure.map.view import MapSession, TileLayer
from ..infrastructure.persistence.workouts import WorkoutRepository
from ..infrastructure.storage.client import (
    KeyValueStore,
    StorageConfig,
    create_storage_client,
)

logger = logging.getLogger(__name__)

# Shared instances (one workout session per process)
_storage_client: Optional[KeyValueStore] = None
_workout_store: Optional[WorkoutStore] = None
_map_session: Optional[MapSession] = None


def reset_state() -> None:
    """Drop the shared instances. Used by tests and on shutdown."""
    global _storage_client, _workout_store, _map_session
    _storage_client = None
    _workout_store = None
    _map_session = None


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> KeyValueStore:
    """
    Provide the slot storage client for the configured backend.

    Created once so the in-memory backend keeps its data between
    requests.
    """
    global _storage_client

    if _storage_client is None:
        config = None
        if settings.storage_backend == "r2":
            config = StorageConfig(
                access_key_id=settings.r2_access_key_id,
                secret_access_key=settings.r2_secret_access_key,
                bucket_name=settings.r2_bucket_name,
                endpoint_url=settings.r2_endpoint,
                prefix=settings.r2_key_prefix,
            )

        _storage_client = create_storage_client(
            backend=settings.storage_backend,
            config=config,
            directory=settings.storage_file_dir,
        )
        logger.info(
            "Created storage client",
            extra={"backend": settings.storage_backend}
        )

    return _storage_client


def get_map_session(
    settings: Annotated[Settings, Depends(get_settings)],
) -> MapSession:
    """Provide the process-wide map session."""
    global _map_session

    if _map_session is None:
        _map_session = MapSession(
            zoom=settings.map_default_zoom,
            tile_layer=TileLayer(
                url_template=settings.map_tile_url,
                attribution=settings.map_tile_attribution,
            ),
        )

    return _map_session


def get_workout_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> WorkoutStore:
    """
    Provide the workout store, restoring the persisted log on first use.

    Restored workouts start with pending markers; they get pinned once
    the map session reports a position.
    """
    global _workout_store

    if _workout_store is None:
        repository = WorkoutRepository(
            storage=get_storage_client(settings),
            key=settings.storage_key,
        )
        map_session = get_map_session(settings)

        store = WorkoutStore(persistence=repository, map_binding=map_session.view)
        store.initialize()
        _workout_store = store

        logger.info(
            "Created workout store",
            extra={"workouts": len(store), "storage_key": settings.storage_key}
        )

    return _workout_store


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
StorageClientDep = Annotated[KeyValueStore, Depends(get_storage_client)]
MapSessionDep = Annotated[MapSession, Depends(get_map_session)]
WorkoutStoreDep = Annotated[WorkoutStore, Depends(get_workout_store)]
