"""VelvetCore store: remote client, connection manager and schema."""

from velvetcore.store.client import PostgrestClient, StoreClient, StoreError
from velvetcore.store.database import Database, DatabaseNotInitializedError
from velvetcore.store.schema import render_schema

__all__ = [
    "Database",
    "DatabaseNotInitializedError",
    "PostgrestClient",
    "StoreClient",
    "StoreError",
    "render_schema",
]
