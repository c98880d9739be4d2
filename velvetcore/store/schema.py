"""
Database schema for the VelvetCore store.

Applied to the hosted Postgres instance as a migration. Every table but
lorebook_entries carries a user_id; row-level-security policies accept a
row when user_id matches either the subject of an authenticated JWT or
the owner id the client placed in the app.user_id session variable.
Entries inherit ownership from their parent lorebook.
"""

from velvetcore.constants import (
    CHARACTERS_TABLE,
    LOREBOOK_ENTRIES_TABLE,
    LOREBOOKS_TABLE,
    MESSAGES_TABLE,
    OWNER_SETTING,
    SESSIONS_TABLE,
    SETTINGS_TABLE,
)

TABLES_SQL = """
-- Character profiles
CREATE TABLE IF NOT EXISTS characters (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  name text NOT NULL,
  tagline text DEFAULT '',
  description text DEFAULT '',
  appearance text DEFAULT '',
  personality text DEFAULT '',
  first_message text DEFAULT '',
  chat_examples text DEFAULT '',
  avatar_url text DEFAULT '',
  scenario text DEFAULT '',
  event_sequence text DEFAULT '',
  style text DEFAULT '',
  jailbreak text DEFAULT '',
  created_at timestamptz DEFAULT now(),
  updated_at timestamptz DEFAULT now(),
  user_id text NOT NULL
);

-- Chat sessions, one character each
CREATE TABLE IF NOT EXISTS chat_sessions (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  character_id uuid NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
  name text NOT NULL,
  summary text DEFAULT '',
  last_summarized_message_id uuid,
  last_updated timestamptz DEFAULT now(),
  created_at timestamptz DEFAULT now(),
  user_id text NOT NULL
);

-- Messages; ordered by timestamp (ms epoch), not by insertion
CREATE TABLE IF NOT EXISTS messages (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  session_id uuid NOT NULL REFERENCES chat_sessions(id) ON DELETE CASCADE,
  role text NOT NULL CHECK (role IN ('user', 'model', 'system')),
  content text NOT NULL,
  timestamp bigint NOT NULL,
  swipes jsonb DEFAULT '[]',
  current_index int DEFAULT 0,
  created_at timestamptz DEFAULT now(),
  user_id text NOT NULL
);

-- Lorebooks; character_id NULL means global
CREATE TABLE IF NOT EXISTS lorebooks (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  name text NOT NULL,
  description text DEFAULT '',
  enabled boolean DEFAULT true,
  character_id uuid REFERENCES characters(id) ON DELETE CASCADE,
  is_global boolean DEFAULT false,
  created_at timestamptz DEFAULT now(),
  user_id text NOT NULL
);

-- Keyword-triggered entries; no owner column
CREATE TABLE IF NOT EXISTS lorebook_entries (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  lorebook_id uuid NOT NULL REFERENCES lorebooks(id) ON DELETE CASCADE,
  keys jsonb NOT NULL DEFAULT '[]',
  content text NOT NULL,
  enabled boolean DEFAULT true,
  created_at timestamptz DEFAULT now()
);

-- One settings document per owner
CREATE TABLE IF NOT EXISTS app_settings (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  user_id text NOT NULL UNIQUE,
  settings_data jsonb NOT NULL,
  created_at timestamptz DEFAULT now(),
  updated_at timestamptz DEFAULT now()
);

-- Indexes for performance
CREATE INDEX IF NOT EXISTS idx_characters_user_id ON characters(user_id);
CREATE INDEX IF NOT EXISTS idx_chat_sessions_character_id ON chat_sessions(character_id);
CREATE INDEX IF NOT EXISTS idx_chat_sessions_user_id ON chat_sessions(user_id);
CREATE INDEX IF NOT EXISTS idx_messages_session_id ON messages(session_id);
CREATE INDEX IF NOT EXISTS idx_messages_user_id ON messages(user_id);
CREATE INDEX IF NOT EXISTS idx_lorebooks_character_id ON lorebooks(character_id);
CREATE INDEX IF NOT EXISTS idx_lorebooks_user_id ON lorebooks(user_id);
CREATE INDEX IF NOT EXISTS idx_lorebook_entries_lorebook_id ON lorebook_entries(lorebook_id);
"""

# Lets the client place its owner id in the session variable read by the policies
OWNER_CONTEXT_SQL = """
CREATE OR REPLACE FUNCTION public.set_config(setting text, value text)
RETURNS text
LANGUAGE sql
AS $$ SELECT pg_catalog.set_config(setting, value, false) $$;
"""

# Table -> (policy noun) for the owner-stamped tables
OWNED_TABLES: dict[str, str] = {
    CHARACTERS_TABLE: "characters",
    SESSIONS_TABLE: "sessions",
    MESSAGES_TABLE: "messages",
    LOREBOOKS_TABLE: "lorebooks",
    SETTINGS_TABLE: "settings",
}

ALL_TABLES = [*OWNED_TABLES, LOREBOOK_ENTRIES_TABLE]


def owner_predicate(column: str = "user_id") -> str:
    """The ownership test shared by every policy."""
    return (
        f"{column} = current_setting('request.jwt.claims', true)::json->>'sub' "
        f"OR {column} = current_setting('{OWNER_SETTING}', true)"
    )


def entry_predicate() -> str:
    """Entries are visible when their parent lorebook is."""
    return (
        "EXISTS (\n"
        f"    SELECT 1 FROM {LOREBOOKS_TABLE}\n"
        f"    WHERE {LOREBOOKS_TABLE}.id = {LOREBOOK_ENTRIES_TABLE}.lorebook_id\n"
        f"    AND ({owner_predicate(f'{LOREBOOKS_TABLE}.user_id')})\n"
        "  )"
    )


def _policies_for(table: str, predicate: str, select: str, insert: str, update: str, delete: str) -> list[str]:
    return [
        f'CREATE POLICY "{select}"\n  ON {table} FOR SELECT\n  USING ({predicate});',
        f'CREATE POLICY "{insert}"\n  ON {table} FOR INSERT\n  WITH CHECK ({predicate});',
        f'CREATE POLICY "{update}"\n  ON {table} FOR UPDATE\n  USING ({predicate})\n  WITH CHECK ({predicate});',
        f'CREATE POLICY "{delete}"\n  ON {table} FOR DELETE\n  USING ({predicate});',
    ]


def build_policies() -> list[str]:
    """CREATE POLICY statements for all six tables, four per table."""
    statements: list[str] = []
    for table, noun in OWNED_TABLES.items():
        statements += _policies_for(
            table,
            owner_predicate(),
            select=f"Users can view own {noun}",
            insert=f"Users can insert own {noun}",
            update=f"Users can update own {noun}",
            delete=f"Users can delete own {noun}",
        )
    statements += _policies_for(
        LOREBOOK_ENTRIES_TABLE,
        entry_predicate(),
        select="Users can view entries of own lorebooks",
        insert="Users can insert entries into own lorebooks",
        update="Users can update entries in own lorebooks",
        delete="Users can delete entries from own lorebooks",
    )
    return statements


def render_schema() -> str:
    """The complete migration: tables, indexes, owner-context RPC, RLS."""
    rls = "\n".join(f"ALTER TABLE {t} ENABLE ROW LEVEL SECURITY;" for t in ALL_TABLES)
    policies = "\n\n".join(build_policies())
    return "\n".join([TABLES_SQL.strip(), "", OWNER_CONTEXT_SQL.strip(), "", rls, "", policies, ""])
