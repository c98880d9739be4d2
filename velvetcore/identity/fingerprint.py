"""
Fingerprint-derived owner identity for VelvetCore.

There is no login. Every row is stamped with an owner id that is
synthesized once per client profile from environment signals, hashed,
and persisted locally. It is an ownership convenience key, not a
credential: it only has to stay stable for the lifetime of the storage
file. Deleting the file makes all previously stored data unreachable.
"""

from __future__ import annotations

import json
import locale
import os
import platform
import random
import shutil
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Protocol

from velvetcore.constants import IDENTITY_FILE, OWNER_ID_STORAGE_KEY
from velvetcore.utils.logging import get_logger

logger = get_logger("identity")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_SIGNAL_SEPARATOR = "|||"


class OwnerIdProvider(Protocol):
    """Anything that can name the current owner. Swap in real auth here."""

    def provide_owner_id(self) -> str: ...


class FileIdentityStorage:
    """
    Durable key/value storage backed by a small JSON file.

    Plays the role a browser's localStorage plays for a web client.
    """

    def __init__(self, path: Path | None = None):
        self.path = path or IDENTITY_FILE

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if isinstance(value, str) and value else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        os.replace(tmp, self.path)

    def clear(self) -> None:
        """Forget every stored value. The next owner id will be new."""
        self.path.unlink(missing_ok=True)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("identity_storage_corrupt", path=str(self.path))
            return {}
        return data if isinstance(data, dict) else {}


class FingerprintIdentity:
    """Owner id synthesized from environment signals and persisted on first use."""

    def __init__(
        self,
        storage: FileIdentityStorage | None = None,
        storage_key: str = OWNER_ID_STORAGE_KEY,
        signals: Callable[[], list[str]] | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self.storage = storage or FileIdentityStorage()
        self.storage_key = storage_key
        self._signals = signals or collect_signals
        self._clock = clock or _now_ms

    def provide_owner_id(self) -> str:
        stored = self.storage.get(self.storage_key)
        if stored:
            return stored

        now_ms = self._clock()
        signals = self._signals() + [str(now_ms), repr(random.random())]
        digest = rolling_hash(_SIGNAL_SEPARATOR.join(signals))
        owner_id = f"user_{to_base36(abs(digest))}_{to_base36(now_ms)}"

        self.storage.set(self.storage_key, owner_id)
        logger.info("owner_id_created", storage=str(self.storage.path))
        return owner_id


class StaticIdentity:
    """A fixed owner id, e.g. the subject of an authenticated session."""

    def __init__(self, owner_id: str):
        if not owner_id:
            raise ValueError("Owner id must not be empty")
        self.owner_id = owner_id

    def provide_owner_id(self) -> str:
        return self.owner_id


def collect_signals() -> list[str]:
    """Environment signals that vary between machines and profiles."""
    columns, lines = shutil.get_terminal_size()
    offset = datetime.now().astimezone().utcoffset()
    offset_minutes = int(offset.total_seconds() // 60) if offset else 0
    return [
        f"{platform.system()}/{platform.release()} {platform.machine()} "
        f"Python/{platform.python_version()}",
        locale.getlocale()[0] or "",
        str(columns),
        str(lines),
        str(offset_minutes),
        str(sys.stdout.isatty()),
        str(bool(os.environ.get("HOME") or os.environ.get("USERPROFILE"))),
    ]


def rolling_hash(data: str) -> int:
    """
    Non-cryptographic 32-bit rolling hash (h * 31 + c), signed.

    The value wraps to a signed 32-bit integer after every character.
    """
    h = 0
    for ch in data:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def to_base36(n: int) -> str:
    if n < 0:
        raise ValueError("Only non-negative integers are supported")
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _now_ms() -> int:
    return time.time_ns() // 1_000_000
