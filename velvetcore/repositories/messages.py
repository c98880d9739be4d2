"""Messages within a chat session, ordered by their ms timestamp."""

from __future__ import annotations

from typing import Any

from velvetcore.constants import MESSAGES_TABLE
from velvetcore.repositories.models import Message
from velvetcore.store.database import Database
from velvetcore.utils.logging import get_logger

logger = get_logger("messages")


class MessageRepository:
    def __init__(self, db: Database):
        self.db = db

    async def save_many(self, messages: list[Message], session_id: str) -> None:
        """Upsert a batch of messages for one session in a single request."""
        client = self.db.ensure_ready()
        if not messages:
            return
        rows = [self.db.with_owner(_to_row(m, session_id)) for m in messages]
        await client.upsert(MESSAGES_TABLE, rows)
        logger.debug("messages_saved", session_id=session_id, count=len(rows))

    async def save(self, message: Message, session_id: str) -> None:
        await self.save_many([message], session_id)

    async def load(self, session_id: str) -> list[Message]:
        client = self.db.ensure_ready()
        rows = await client.select(
            MESSAGES_TABLE,
            self.db.owner_filter(session_id=session_id),
            order_by="timestamp",
        )
        return [_from_row(r) for r in rows]

    async def delete(self, message_id: str) -> None:
        client = self.db.ensure_ready()
        await client.delete(MESSAGES_TABLE, self.db.owner_filter(id=message_id))


def _to_row(message: Message, session_id: str) -> dict[str, Any]:
    return {
        "id": message.id,
        "session_id": session_id,
        "role": message.role,
        "content": message.content,
        "timestamp": message.timestamp,
        "swipes": list(message.swipes),
        "current_index": message.current_index or 0,
    }


def _from_row(row: dict[str, Any]) -> Message:
    return Message(
        id=row["id"],
        role=row["role"],
        content=row.get("content") or "",
        timestamp=row["timestamp"],
        swipes=row.get("swipes") or [],
        current_index=row.get("current_index") or 0,
    )
