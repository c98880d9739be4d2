"""Project-wide constants for VelvetCore."""

import os
import platform
from pathlib import Path

PROJECT_NAME = "velvetcore"
PROJECT_DISPLAY_NAME = "VelvetCore"
PROJECT_DESCRIPTION = "Persistence layer for the VelvetCore roleplay chat app"
PROJECT_VERSION = "0.1.0"

# Sent as X-Client-Info on every store request
CLIENT_INFO = "velvetcore-roleplay"

# Data directories (cross-platform)
if platform.system() == "Windows":
    _appdata = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    DATA_DIR = _appdata / PROJECT_NAME
else:
    DATA_DIR = Path.home() / f".{PROJECT_NAME}"

CONFIG_FILE = DATA_DIR / "config.toml"
IDENTITY_FILE = DATA_DIR / "identity.json"

# Key under which the owner id is persisted. Changing it orphans existing data.
OWNER_ID_STORAGE_KEY = "velvetcore_user_id"

# Session variable read by the row-level-security policies
OWNER_SETTING = "app.user_id"
OWNER_CONTEXT_RPC = "set_config"

# PostgREST error code for "single row requested, none returned"
NO_ROWS_ERROR_CODE = "PGRST116"

# Table names
CHARACTERS_TABLE = "characters"
SESSIONS_TABLE = "chat_sessions"
MESSAGES_TABLE = "messages"
LOREBOOKS_TABLE = "lorebooks"
LOREBOOK_ENTRIES_TABLE = "lorebook_entries"
SETTINGS_TABLE = "app_settings"

# Tables carrying a user_id column, in the order the full wipe addresses them
OWNER_TABLES = [
    CHARACTERS_TABLE,
    SESSIONS_TABLE,
    MESSAGES_TABLE,
    LOREBOOKS_TABLE,
    SETTINGS_TABLE,
]

MESSAGE_ROLES = ("user", "model", "system")

# Sensitive content patterns, redacted from every log entry
SENSITIVE_PATTERNS = [
    r"eyJ[a-zA-Z0-9_\-]{10,}\.[a-zA-Z0-9_\-]{10,}\.[a-zA-Z0-9_\-]{10,}",  # JWTs (anon / service keys)
    r"sb_secret_[a-zA-Z0-9_\-]{10,}",   # Supabase secret keys
    r"sb_publishable_[a-zA-Z0-9_\-]{10,}",  # Supabase publishable keys
    r"(?i)bearer\s+[a-zA-Z0-9._\-]{20,}",  # Authorization headers
]
