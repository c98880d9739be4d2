"""VelvetCore repositories: one CRUD adapter per stored entity."""

from velvetcore.repositories.characters import CharacterRepository
from velvetcore.repositories.entries import LorebookEntryRepository
from velvetcore.repositories.lorebooks import LorebookRepository
from velvetcore.repositories.messages import MessageRepository
from velvetcore.repositories.models import (
    AppSettings,
    ChatSession,
    Character,
    Lorebook,
    LorebookEntry,
    Message,
)
from velvetcore.repositories.sessions import SessionRepository
from velvetcore.repositories.settings import SettingsRepository

__all__ = [
    "AppSettings",
    "Character",
    "CharacterRepository",
    "ChatSession",
    "Lorebook",
    "LorebookEntry",
    "LorebookEntryRepository",
    "LorebookRepository",
    "Message",
    "MessageRepository",
    "SessionRepository",
    "SettingsRepository",
]
