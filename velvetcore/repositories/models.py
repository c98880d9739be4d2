"""
Entity shapes exchanged with the application.

Attributes are snake_case in Python; the serialized form
(model_dump(by_alias=True)) and accepted input use camelCase, which is
the shape the chat front end works with.
"""

from __future__ import annotations

import time
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MessageRole = Literal["user", "model", "system"]

# Opaque settings document, stored as-is
AppSettings = dict[str, Any]


def new_id() -> str:
    """Generate a new unique ID."""
    return str(uuid.uuid4())


def now_ms() -> int:
    return time.time_ns() // 1_000_000


class MonotonicClock:
    """Millisecond timestamps that never repeat or go backwards."""

    def __init__(self) -> None:
        self._last = 0

    def __call__(self) -> int:
        self._last = max(now_ms(), self._last + 1)
        return self._last


next_message_timestamp = MonotonicClock()


_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def ms_to_iso(ms: int) -> str:
    return (_EPOCH + ms * _ONE_MS).isoformat()


def iso_to_ms(value: str | None) -> int:
    """Parse a store timestamp (naive values are UTC) to ms epoch, exactly."""
    if not value:
        return 0
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return (dt - _EPOCH) // _ONE_MS


class _Entity(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_id)


class LorebookEntry(_Entity):
    keys: list[str] = Field(default_factory=list)
    content: str
    enabled: bool = True


class Lorebook(_Entity):
    name: str
    description: str = ""
    enabled: bool = True
    entries: list[LorebookEntry] = Field(default_factory=list)


class Character(_Entity):
    name: str
    tagline: str = ""
    description: str = ""
    appearance: str = ""
    personality: str = ""
    first_message: str = ""
    chat_examples: str = ""
    avatar_url: str = ""
    scenario: str = ""
    event_sequence: str = ""
    style: str = ""
    jailbreak: str = ""
    lorebooks: list[Lorebook] = Field(default_factory=list)
    # Assigned by the store
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Message(_Entity):
    role: MessageRole
    content: str
    timestamp: int = Field(default_factory=next_message_timestamp)
    swipes: list[str] = Field(default_factory=list)
    current_index: int = Field(default=0, ge=0)


class ChatSession(_Entity):
    character_id: str
    name: str
    summary: str = ""
    last_summarized_message_id: str | None = None
    last_updated: int = Field(default_factory=now_ms)  # ms epoch
    messages: list[Message] = Field(default_factory=list)
