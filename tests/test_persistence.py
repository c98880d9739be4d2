"""Tests for the aggregate save/load/wipe operations."""

import pytest

from velvetcore.config import StoreConfig, VelvetCoreConfig
from velvetcore.identity import StaticIdentity
from velvetcore.persistence import PersistenceService, Snapshot, create_service
from velvetcore.repositories import Character, ChatSession, Lorebook, LorebookEntry, Message
from velvetcore.store.database import Database, DatabaseNotInitializedError


def sample_state():
    characters = [
        Character(
            id="c1",
            name="Ada",
            lorebooks=[Lorebook(id="l1", name="World", entries=[LorebookEntry(id="e1", content="fact")])],
        ),
        Character(id="c2", name="Bea"),
    ]
    sessions = {
        "s1": ChatSession(
            id="s1",
            character_id="c1",
            name="Tea",
            messages=[
                Message(id="m1", role="user", content="hi", timestamp=1),
                Message(id="m2", role="model", content="hello", timestamp=2),
            ],
        ),
        "s2": ChatSession(id="s2", character_id="c2", name="Walk"),
    }
    return characters, sessions, {"theme": "dark"}


class TestSaveAll:
    @pytest.mark.asyncio
    async def test_writes_in_referential_order(self, service, store):
        characters, sessions, settings = sample_state()
        await service.save_all(characters, sessions, settings)

        writes = [table for op, table in store.requests if op == "upsert"]
        first_session = writes.index("chat_sessions")
        assert all(t != "characters" for t in writes[first_session:])
        assert writes[-1] == "app_settings"
        assert writes.count("characters") == 2
        assert writes.count("chat_sessions") == 2

    @pytest.mark.asyncio
    async def test_accepts_session_list(self, service, store):
        characters, sessions, settings = sample_state()
        await service.save_all(characters, list(sessions.values()), settings)
        assert store.count("chat_sessions") == 2

    @pytest.mark.asyncio
    async def test_requires_initialization(self, store):
        svc = PersistenceService(Database(StoreConfig(url="", anon_key=""), StaticIdentity("o"), lambda _: store))
        with pytest.raises(DatabaseNotInitializedError):
            await svc.save_all([], {}, {})


class TestLoadAll:
    @pytest.mark.asyncio
    async def test_round_trip(self, service):
        characters, sessions, settings = sample_state()
        await service.save_all(characters, sessions, settings)

        snapshot = await service.load_all()
        assert isinstance(snapshot, Snapshot)
        assert {c.id for c in snapshot.characters} == {"c1", "c2"}
        assert set(snapshot.sessions) == {"s1", "s2"}
        assert [m.id for m in snapshot.sessions["s1"].messages] == ["m1", "m2"]
        assert snapshot.settings == {"theme": "dark"}

    @pytest.mark.asyncio
    async def test_empty(self, service):
        snapshot = await service.load_all()
        assert snapshot == Snapshot()


class TestClearAllData:
    @pytest.mark.asyncio
    async def test_wipes_owner_data(self, service, store):
        characters, sessions, settings = sample_state()
        await service.save_all(characters, sessions, settings)

        await service.clear_all_data()

        for table in ("characters", "chat_sessions", "messages", "lorebooks", "lorebook_entries", "app_settings"):
            assert store.count(table) == 0, table
        deleted = sorted(table for op, table in store.requests if op == "delete")
        assert deleted == sorted(["characters", "chat_sessions", "messages", "lorebooks", "app_settings"])

    @pytest.mark.asyncio
    async def test_leaves_other_owner_alone(self, service, other_service, store):
        await other_service.save_all(*sample_state())
        await service.save_all([Character(id="c9", name="Mine")], {}, {"theme": "light"})

        await service.clear_all_data()

        assert store.count("characters") == 2
        snapshot = await other_service.load_all()
        assert len(snapshot.characters) == 2
        assert snapshot.settings == {"theme": "dark"}


class TestScenarios:
    @pytest.mark.asyncio
    async def test_character_with_lorebook_then_delete(self, service):
        await service.characters.save(
            Character(
                id="c1",
                name="Ada",
                lorebooks=[Lorebook(id="l1", name="World", entries=[LorebookEntry(id="e1", content="fact")])],
            )
        )

        characters = await service.characters.load()
        assert len(characters) == 1
        dumped = characters[0].model_dump(by_alias=True)
        assert dumped["name"] == "Ada"
        assert dumped["lorebooks"][0]["name"] == "World"
        assert dumped["lorebooks"][0]["entries"][0]["content"] == "fact"

        await service.characters.delete("c1")
        assert await service.lorebooks.load("c1") == []

    @pytest.mark.asyncio
    async def test_messages_sorted_by_timestamp(self, service):
        await service.characters.save(Character(id="c1", name="Ada"))
        await service.sessions.save(
            ChatSession(
                id="s1",
                character_id="c1",
                name="Chat",
                messages=[
                    Message(role="user", content="a", timestamp=300),
                    Message(role="user", content="b", timestamp=100),
                    Message(role="user", content="c", timestamp=200),
                ],
            )
        )
        assert [m.timestamp for m in await service.messages.load("s1")] == [100, 200, 300]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_async_context_manager(self, store, store_config):
        async with PersistenceService(Database(store_config, StaticIdentity("o"), lambda _: store)) as svc:
            assert svc.is_available()
        assert store.closed is True
        assert not svc.is_available()

    @pytest.mark.asyncio
    async def test_from_config_without_credentials(self, tmp_dir):
        config = VelvetCoreConfig(store=StoreConfig(url="", anon_key=""))
        svc = PersistenceService.from_config(config, identity=StaticIdentity("o"))
        assert await svc.initialize() is False
        assert svc.is_available() is False

    @pytest.mark.asyncio
    async def test_from_config_uses_fingerprint_identity(self, store, store_config, identity_path):
        from velvetcore.config import IdentityConfig

        config = VelvetCoreConfig(store=store_config, identity=IdentityConfig(storage_file=identity_path))
        svc = PersistenceService.from_config(config, client_factory=lambda _: store)
        assert await svc.initialize() is True
        assert svc.db.owner_id.startswith("user_")
        assert identity_path.exists()
        await svc.close()


class TestCreateService:
    @pytest.fixture(autouse=True)
    def reset_structlog(self):
        import structlog

        yield
        structlog.reset_defaults()

    @pytest.mark.asyncio
    async def test_builds_from_config_file(self, tmp_dir, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        path = tmp_dir / "config.toml"
        identity_file = str(tmp_dir / "id.json").replace("\\", "/")
        path.write_text(
            f'[identity]\nstorage_file = "{identity_file}"\n\n[logging]\nformat = "console"\n'
        )
        svc = create_service(path)
        assert isinstance(svc, PersistenceService)
        assert svc.db.config.has_credentials is False
        assert await svc.initialize() is False
