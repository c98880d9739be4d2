"""Chat sessions and their messages."""

from __future__ import annotations

import asyncio
from typing import Any

from velvetcore.constants import SESSIONS_TABLE
from velvetcore.repositories.messages import MessageRepository
from velvetcore.repositories.models import ChatSession, Message, iso_to_ms, ms_to_iso
from velvetcore.store.database import Database
from velvetcore.utils.logging import get_logger

logger = get_logger("sessions")


class SessionRepository:
    def __init__(self, db: Database, messages: MessageRepository | None = None):
        self.db = db
        self.messages = messages or MessageRepository(db)

    async def save(self, session: ChatSession) -> None:
        """Upsert the session row, then all of its messages in one batch."""
        client = self.db.ensure_ready()
        await client.upsert(SESSIONS_TABLE, [self.db.with_owner(_to_row(session))])

        if session.messages:
            await self.messages.save_many(session.messages, session.id)
        logger.info(
            "session_saved",
            session_id=session.id,
            character_id=session.character_id,
            messages=len(session.messages),
        )

    async def load(self) -> dict[str, ChatSession]:
        """Sessions keyed by id, most recently active first."""
        client = self.db.ensure_ready()
        rows = await client.select(
            SESSIONS_TABLE,
            self.db.owner_filter(),
            order_by="last_updated",
            descending=True,
        )
        if not rows:
            return {}

        message_lists = await asyncio.gather(*(self.messages.load(r["id"]) for r in rows))
        return {
            row["id"]: _from_row(row, messages)
            for row, messages in zip(rows, message_lists)
        }

    async def delete(self, session_id: str) -> None:
        """Delete a session. The store cascades to its messages."""
        client = self.db.ensure_ready()
        await client.delete(SESSIONS_TABLE, self.db.owner_filter(id=session_id))
        logger.info("session_deleted", session_id=session_id)


def _to_row(session: ChatSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "character_id": session.character_id,
        "name": session.name,
        "summary": session.summary or "",
        "last_summarized_message_id": session.last_summarized_message_id or None,
        "last_updated": ms_to_iso(session.last_updated),
    }


def _from_row(row: dict[str, Any], messages: list[Message]) -> ChatSession:
    return ChatSession(
        id=row["id"],
        character_id=row["character_id"],
        name=row.get("name") or "",
        summary=row.get("summary") or "",
        last_summarized_message_id=row.get("last_summarized_message_id"),
        last_updated=iso_to_ms(row.get("last_updated")),
        messages=messages,
    )
