"""
Whole-state persistence for VelvetCore.

PersistenceService is what the application talks to: it owns the
Database context, wires up one repository per entity, and adds the
aggregate save/load/wipe operations on top.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from velvetcore.config import VelvetCoreConfig, load_config
from velvetcore.constants import OWNER_TABLES
from velvetcore.identity import FileIdentityStorage, FingerprintIdentity, OwnerIdProvider
from velvetcore.repositories import (
    AppSettings,
    ChatSession,
    Character,
    CharacterRepository,
    LorebookEntryRepository,
    LorebookRepository,
    MessageRepository,
    SessionRepository,
    SettingsRepository,
)
from velvetcore.store.database import ClientFactory, Database
from velvetcore.utils.logging import get_logger, setup_logging

logger = get_logger("persistence")


@dataclass
class Snapshot:
    """Everything stored for one owner."""

    characters: list[Character] = field(default_factory=list)
    sessions: dict[str, ChatSession] = field(default_factory=dict)
    settings: AppSettings | None = None


class PersistenceService:
    """Façade over the store: initialization, repositories, aggregate ops."""

    def __init__(self, db: Database):
        self.db = db
        self.entries = LorebookEntryRepository(db)
        self.lorebooks = LorebookRepository(db, self.entries)
        self.characters = CharacterRepository(db, self.lorebooks)
        self.messages = MessageRepository(db)
        self.sessions = SessionRepository(db, self.messages)
        self.settings = SettingsRepository(db)

    @classmethod
    def from_config(
        cls,
        config: VelvetCoreConfig,
        identity: OwnerIdProvider | None = None,
        client_factory: ClientFactory | None = None,
    ) -> PersistenceService:
        if identity is None:
            identity = FingerprintIdentity(
                FileIdentityStorage(config.identity.storage_file),
                storage_key=config.identity.storage_key,
            )
        return cls(Database(config.store, identity, client_factory))

    async def initialize(self) -> bool:
        return await self.db.initialize()

    def is_available(self) -> bool:
        return self.db.is_available()

    async def close(self) -> None:
        await self.db.close()

    async def __aenter__(self) -> PersistenceService:
        await self.initialize()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def save_all(
        self,
        characters: Iterable[Character],
        sessions: Mapping[str, ChatSession] | Iterable[ChatSession],
        settings: AppSettings,
    ) -> None:
        """
        Write characters, then sessions, then settings, one at a time.

        Characters go first so every session's character row already
        exists when the session is written. Latency grows linearly with
        the number of entities.
        """
        self.db.ensure_ready()
        if isinstance(sessions, Mapping):
            sessions = sessions.values()

        saved_characters = saved_sessions = 0
        for character in characters:
            await self.characters.save(character)
            saved_characters += 1
        for session in sessions:
            await self.sessions.save(session)
            saved_sessions += 1
        await self.settings.save(settings)

        logger.info(
            "state_saved",
            characters=saved_characters,
            sessions=saved_sessions,
        )

    async def load_all(self) -> Snapshot:
        """Load characters, sessions and settings concurrently."""
        self.db.ensure_ready()
        characters, sessions, settings = await asyncio.gather(
            self.characters.load(),
            self.sessions.load(),
            self.settings.load(),
        )
        return Snapshot(characters=characters, sessions=sessions, settings=settings)

    async def clear_all_data(self) -> None:
        """
        Delete every owned row in the five owner-stamped tables.

        Lorebook entries have no owner column and are removed by the
        store's cascade from lorebooks.
        """
        client = self.db.ensure_ready()
        owner = self.db.owner_filter()
        await asyncio.gather(*(client.delete(table, owner) for table in OWNER_TABLES))
        logger.warning("owner_data_cleared")


def create_service(config_path: Path | None = None) -> PersistenceService:
    """
    Application bootstrap: load configuration, set up logging, and build
    an uninitialized PersistenceService. Call initialize() before use.
    """
    config = load_config(config_path)
    setup_logging(
        level=config.logging.level,
        json_format=config.logging.format == "json",
        redact_secrets=config.logging.redact_secrets,
    )
    return PersistenceService.from_config(config)
