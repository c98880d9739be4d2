"""Lorebooks: world-info collections, either attached to a character or global."""

from __future__ import annotations

import asyncio
from typing import Any

from velvetcore.constants import LOREBOOKS_TABLE
from velvetcore.repositories.entries import LorebookEntryRepository
from velvetcore.repositories.models import Lorebook
from velvetcore.store.database import Database
from velvetcore.utils.logging import get_logger

logger = get_logger("lorebooks")


class LorebookRepository:
    def __init__(self, db: Database, entries: LorebookEntryRepository | None = None):
        self.db = db
        self.entries = entries or LorebookEntryRepository(db)

    async def save(self, lorebook: Lorebook, character_id: str | None = None) -> None:
        """
        Upsert a lorebook, then its entries. Without a character_id the
        lorebook is stored as global.
        """
        client = self.db.ensure_ready()
        row = {
            "id": lorebook.id,
            "name": lorebook.name,
            "description": lorebook.description or "",
            "enabled": lorebook.enabled,
            "character_id": character_id or None,
            "is_global": not character_id,
        }
        await client.upsert(LOREBOOKS_TABLE, [self.db.with_owner(row)])

        if lorebook.entries:
            await self.entries._write(lorebook.entries, lorebook.id)
        logger.debug("lorebook_saved", lorebook_id=lorebook.id, global_=not character_id)

    async def load(self, character_id: str | None = None) -> list[Lorebook]:
        """Lorebooks of one character, or the global ones when none is given."""
        client = self.db.ensure_ready()
        if character_id:
            filters = self.db.owner_filter(character_id=character_id)
        else:
            filters = self.db.owner_filter(is_global=True)

        rows = await client.select(LOREBOOKS_TABLE, filters)
        if not rows:
            return []

        entry_lists = await asyncio.gather(*(self.entries._read(r["id"]) for r in rows))
        return [
            _from_row(row, entries) for row, entries in zip(rows, entry_lists)
        ]

    async def delete(self, lorebook_id: str) -> None:
        client = self.db.ensure_ready()
        await client.delete(LOREBOOKS_TABLE, self.db.owner_filter(id=lorebook_id))


def _from_row(row: dict[str, Any], entries: list) -> Lorebook:
    return Lorebook(
        id=row["id"],
        name=row.get("name") or "",
        description=row.get("description") or "",
        enabled=row.get("enabled", True),
        entries=entries,
    )
