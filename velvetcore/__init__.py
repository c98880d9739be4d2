"""VelvetCore: persistence for characters, chat sessions, lorebooks and settings."""

from velvetcore.config import VelvetCoreConfig, load_config
from velvetcore.persistence import PersistenceService, Snapshot, create_service
from velvetcore.store import Database, DatabaseNotInitializedError, StoreError

__all__ = [
    "Database",
    "DatabaseNotInitializedError",
    "PersistenceService",
    "Snapshot",
    "StoreError",
    "VelvetCoreConfig",
    "create_service",
    "load_config",
]
