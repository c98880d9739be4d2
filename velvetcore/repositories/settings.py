"""Per-owner application settings: a single JSON document per owner."""

from __future__ import annotations

from velvetcore.constants import NO_ROWS_ERROR_CODE, SETTINGS_TABLE
from velvetcore.repositories.models import AppSettings
from velvetcore.store.client import StoreError
from velvetcore.store.database import Database, utc_now_iso
from velvetcore.utils.logging import get_logger

logger = get_logger("settings")


class SettingsRepository:
    def __init__(self, db: Database):
        self.db = db

    async def save(self, settings: AppSettings) -> None:
        """Upsert on user_id, so an owner never has more than one row."""
        client = self.db.ensure_ready()
        row = {
            "settings_data": settings,
            "updated_at": utc_now_iso(),
        }
        await client.upsert(SETTINGS_TABLE, [self.db.with_owner(row)], on_conflict="user_id")
        logger.debug("settings_saved")

    async def load(self) -> AppSettings | None:
        """The owner's settings, or None if none were ever saved."""
        client = self.db.ensure_ready()
        try:
            row = await client.select_single(
                SETTINGS_TABLE, self.db.owner_filter(), columns="settings_data"
            )
        except StoreError as e:
            if e.code == NO_ROWS_ERROR_CODE:
                return None
            raise
        return row.get("settings_data")

    async def delete(self) -> None:
        client = self.db.ensure_ready()
        await client.delete(SETTINGS_TABLE, self.db.owner_filter())
