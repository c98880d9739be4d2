"""Lorebook entries. Not owner-stamped; ownership comes from the parent lorebook."""

from __future__ import annotations

from typing import Any

from velvetcore.constants import LOREBOOK_ENTRIES_TABLE, LOREBOOKS_TABLE
from velvetcore.repositories.models import LorebookEntry
from velvetcore.store.database import Database
from velvetcore.utils.logging import get_logger

logger = get_logger("entries")


class LorebookEntryRepository:
    """
    Entries are only reachable through a lorebook of the current owner.
    Every public operation checks the parent first; reads of a foreign
    lorebook come back empty and writes to one are skipped.
    """

    def __init__(self, db: Database):
        self.db = db

    async def save_many(self, entries: list[LorebookEntry], lorebook_id: str) -> None:
        """Upsert all entries of one lorebook in a single request."""
        self.db.ensure_ready()
        if not entries:
            return
        if not await self._owns_lorebook(lorebook_id):
            logger.debug("entry_save_skipped", lorebook_id=lorebook_id)
            return
        await self._write(entries, lorebook_id)

    async def save(self, entry: LorebookEntry, lorebook_id: str) -> None:
        await self.save_many([entry], lorebook_id)

    async def load(self, lorebook_id: str) -> list[LorebookEntry]:
        self.db.ensure_ready()
        if not await self._owns_lorebook(lorebook_id):
            return []
        return await self._read(lorebook_id)

    async def delete(self, entry_id: str, lorebook_id: str) -> None:
        """Delete one entry; an entry of someone else's lorebook is left alone."""
        client = self.db.ensure_ready()
        if not await self._owns_lorebook(lorebook_id):
            logger.debug("entry_delete_skipped", lorebook_id=lorebook_id)
            return
        await client.delete(
            LOREBOOK_ENTRIES_TABLE, {"id": entry_id, "lorebook_id": lorebook_id}
        )

    # Unchecked variants for LorebookRepository, which has just written
    # or owner-filtered the parent row itself.

    async def _write(self, entries: list[LorebookEntry], lorebook_id: str) -> None:
        client = self.db.ensure_ready()
        await client.upsert(
            LOREBOOK_ENTRIES_TABLE, [_to_row(e, lorebook_id) for e in entries]
        )
        logger.debug("entries_saved", lorebook_id=lorebook_id, count=len(entries))

    async def _read(self, lorebook_id: str) -> list[LorebookEntry]:
        client = self.db.ensure_ready()
        rows = await client.select(
            LOREBOOK_ENTRIES_TABLE, {"lorebook_id": lorebook_id}
        )
        return [_from_row(r) for r in rows]

    async def _owns_lorebook(self, lorebook_id: str) -> bool:
        client = self.db.ensure_ready()
        parents = await client.select(
            LOREBOOKS_TABLE,
            self.db.owner_filter(id=lorebook_id),
            columns="id",
        )
        return bool(parents)


def _to_row(entry: LorebookEntry, lorebook_id: str) -> dict[str, Any]:
    return {
        "id": entry.id,
        "lorebook_id": lorebook_id,
        "keys": list(entry.keys),
        "content": entry.content,
        "enabled": entry.enabled,
    }


def _from_row(row: dict[str, Any]) -> LorebookEntry:
    return LorebookEntry(
        id=row["id"],
        keys=row.get("keys") or [],
        content=row.get("content") or "",
        enabled=row.get("enabled", True),
    )
