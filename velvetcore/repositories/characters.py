"""Character profiles and their attached lorebooks."""

from __future__ import annotations

import asyncio
from typing import Any

from velvetcore.constants import CHARACTERS_TABLE
from velvetcore.repositories.lorebooks import LorebookRepository
from velvetcore.repositories.models import Character, Lorebook
from velvetcore.store.database import Database, utc_now_iso
from velvetcore.utils.logging import get_logger

logger = get_logger("characters")


class CharacterRepository:
    """
    Characters are saved together with their lorebooks and loaded
    together with them; a character without its lorebooks is incomplete.
    """

    def __init__(self, db: Database, lorebooks: LorebookRepository | None = None):
        self.db = db
        self.lorebooks = lorebooks or LorebookRepository(db)

    async def save(self, character: Character) -> None:
        """
        Upsert the character, then each lorebook in turn.

        There is no transaction: if a lorebook write fails, the character
        row and any lorebooks already written stay committed.
        """
        client = self.db.ensure_ready()
        await client.upsert(CHARACTERS_TABLE, [self.db.with_owner(_to_row(character))])

        for lorebook in character.lorebooks:
            await self.lorebooks.save(lorebook, character.id)
        logger.info(
            "character_saved",
            character_id=character.id,
            lorebooks=len(character.lorebooks),
        )

    async def load(self) -> list[Character]:
        """All characters of the current owner, newest first."""
        client = self.db.ensure_ready()
        rows = await client.select(
            CHARACTERS_TABLE,
            self.db.owner_filter(),
            order_by="created_at",
            descending=True,
        )
        if not rows:
            return []

        lorebook_lists = await asyncio.gather(*(self.lorebooks.load(r["id"]) for r in rows))
        return [_from_row(row, books) for row, books in zip(rows, lorebook_lists)]

    async def delete(self, character_id: str) -> None:
        """Delete a character. The store cascades to its sessions and lorebooks."""
        client = self.db.ensure_ready()
        await client.delete(CHARACTERS_TABLE, self.db.owner_filter(id=character_id))
        logger.info("character_deleted", character_id=character_id)


def _to_row(character: Character) -> dict[str, Any]:
    return {
        "id": character.id,
        "name": character.name,
        "tagline": character.tagline or "",
        "description": character.description or "",
        "appearance": character.appearance or "",
        "personality": character.personality or "",
        "first_message": character.first_message or "",
        "chat_examples": character.chat_examples or "",
        "avatar_url": character.avatar_url or "",
        "scenario": character.scenario or "",
        "event_sequence": character.event_sequence or "",
        "style": character.style or "",
        "jailbreak": character.jailbreak or "",
        "updated_at": utc_now_iso(),
    }


def _from_row(row: dict[str, Any], lorebooks: list[Lorebook]) -> Character:
    return Character(
        id=row["id"],
        name=row.get("name") or "",
        tagline=row.get("tagline") or "",
        description=row.get("description") or "",
        appearance=row.get("appearance") or "",
        personality=row.get("personality") or "",
        first_message=row.get("first_message") or "",
        chat_examples=row.get("chat_examples") or "",
        avatar_url=row.get("avatar_url") or "",
        scenario=row.get("scenario") or "",
        event_sequence=row.get("event_sequence") or "",
        style=row.get("style") or "",
        jailbreak=row.get("jailbreak") or "",
        lorebooks=lorebooks,
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )
