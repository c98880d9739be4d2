"""
Connection manager for the VelvetCore store.

A Database is constructed once and handed to every repository. It holds
the single store handle and the owner id for the lifetime of the
process; both are written by initialize() and only read afterwards.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Callable

import httpx

from velvetcore.config import IdentityConfig, StoreConfig
from velvetcore.identity import FileIdentityStorage, FingerprintIdentity, OwnerIdProvider
from velvetcore.store.client import PostgrestClient, StoreClient, StoreError
from velvetcore.utils.logging import get_logger

logger = get_logger("database")

ClientFactory = Callable[[StoreConfig], StoreClient]


def default_client_factory(config: StoreConfig) -> StoreClient:
    return PostgrestClient(
        config.url,
        config.anon_key,
        client_info=config.client_info,
        timeout=config.request_timeout_seconds,
    )


class Database:
    """
    Store handle plus owner identity.

    initialize() must succeed before any repository call; ensure_ready()
    enforces that.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        identity: OwnerIdProvider | None = None,
        client_factory: ClientFactory | None = None,
    ):
        self.config = config or StoreConfig()
        self.identity = identity or _default_identity()
        self._client_factory = client_factory or default_client_factory
        self._client: StoreClient | None = None
        self._owner_id: str | None = None
        self.owner_context_applied = False

    async def initialize(self) -> bool:
        """
        Connect to the store. Returns False, without raising, when
        credentials are missing or the handle cannot be built; callers
        should then run without persistence.
        """
        if self._client is not None:
            return True

        if not self.config.has_credentials:
            logger.warning(
                "store_credentials_missing",
                msg="Store URL or key not configured. Data will not persist.",
            )
            return False

        try:
            owner_id = self.identity.provide_owner_id()
            client = self._client_factory(self.config)
        except (OSError, ValueError, httpx.InvalidURL) as e:
            logger.error("database_init_failed", error=str(e))
            return False

        self._owner_id = owner_id
        self._client = client
        await self._apply_owner_context()
        logger.info(
            "database_ready",
            url=self.config.url,
            owner_context=self.owner_context_applied,
        )
        return True

    async def _apply_owner_context(self) -> None:
        """
        Best effort: put the owner id into the store's session variable
        for the RLS policies. On failure every query still filters by
        user_id on the client side.
        """
        try:
            await self.client.rpc(
                self.config.owner_context_rpc,
                {"setting": self.config.owner_setting, "value": self.owner_id},
            )
            self.owner_context_applied = True
        except (StoreError, httpx.HTTPError, ValueError) as e:
            logger.info("owner_context_fallback", reason=str(e))

    def is_available(self) -> bool:
        return self._client is not None

    def ensure_ready(self) -> StoreClient:
        if self._client is None:
            raise DatabaseNotInitializedError(
                "Database not initialized. Call initialize() first."
            )
        return self._client

    @property
    def client(self) -> StoreClient:
        return self.ensure_ready()

    @property
    def owner_id(self) -> str:
        self.ensure_ready()
        if self._owner_id is None:
            raise DatabaseNotInitializedError("No owner id. Call initialize() first.")
        return self._owner_id

    def with_owner(self, row: dict[str, Any]) -> dict[str, Any]:
        """Copy of row stamped with the current owner id."""
        return {**row, "user_id": self.owner_id}

    def owner_filter(self, **filters: Any) -> dict[str, Any]:
        """Equality filters scoped to the current owner."""
        return {**filters, "user_id": self.owner_id}

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("database_closed")


class DatabaseNotInitializedError(Exception):
    """Raised when the store is used before a successful initialize()."""

    pass


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _default_identity() -> OwnerIdProvider:
    cfg = IdentityConfig()
    return FingerprintIdentity(
        FileIdentityStorage(cfg.storage_file), storage_key=cfg.storage_key
    )
