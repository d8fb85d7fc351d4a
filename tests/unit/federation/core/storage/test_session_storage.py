"""Unit tests for the session storage backends."""

import time
from unittest.mock import AsyncMock

import pytest

from src.federation.core.models import AuthSession
from src.federation.core.storage import (
    DatabaseSessionStorage,
    InMemorySessionStorage,
    RedisSessionStorage,
    create_session_storage,
)
from src.federation.runtime.config.config_data import ConfigData


@pytest.fixture(params=["memory", "database"])
def storage(request, db_service):
    if request.param == "memory":
        return InMemorySessionStorage()
    return DatabaseSessionStorage(db_service)


def make_session(session_id: str = "sess-1") -> AuthSession:
    return AuthSession.create(session_id, max_age=3600)


class TestSessionStorageBackends:
    @pytest.mark.asyncio
    async def test_set_get_round_trip(self, storage):
        session = make_session()
        session.user_id = "user-1"
        await storage.set(session.id, session, 3600)

        loaded = await storage.get(session.id, AuthSession)
        assert loaded == session
        assert await storage.exists(session.id)

    @pytest.mark.asyncio
    async def test_overwrite(self, storage):
        session = make_session()
        await storage.set(session.id, session, 3600)
        session.user_id = "user-2"
        await storage.set(session.id, session, 3600)

        loaded = await storage.get(session.id, AuthSession)
        assert loaded.user_id == "user-2"

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        session = make_session()
        await storage.set(session.id, session, 3600)
        await storage.delete(session.id)

        assert await storage.get(session.id, AuthSession) is None
        assert not await storage.exists(session.id)
        await storage.delete(session.id)

    @pytest.mark.asyncio
    async def test_expired_entries_are_invisible(self, storage):
        session = make_session()
        await storage.set(session.id, session, -1)

        assert await storage.get(session.id, AuthSession) is None
        assert not await storage.exists(session.id)

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, storage):
        await storage.set("old", make_session("old"), -10)
        await storage.set("new", make_session("new"), 3600)

        removed = await storage.cleanup_expired()

        assert removed == 1
        assert await storage.exists("new")


class TestRedisSessionStorage:
    @pytest.mark.asyncio
    async def test_uses_setex(self):
        client = AsyncMock()
        storage = RedisSessionStorage(client)
        session = make_session()

        await storage.set(session.id, session, 120)

        client.setex.assert_awaited_once()
        key, ttl, payload = client.setex.call_args.args
        assert key == session.id
        assert ttl == 120
        assert AuthSession.model_validate_json(payload) == session

    @pytest.mark.asyncio
    async def test_get_decodes_bytes(self):
        session = make_session()
        client = AsyncMock()
        client.get.return_value = session.model_dump_json().encode("utf-8")

        loaded = await RedisSessionStorage(client).get(session.id, AuthSession)
        assert loaded == session

    @pytest.mark.asyncio
    async def test_failures_raise_runtime_error(self):
        client = AsyncMock()
        client.setex.side_effect = ConnectionError("refused")

        with pytest.raises(RuntimeError):
            await RedisSessionStorage(client).set("k", make_session(), 60)


class TestCreateSessionStorage:
    @pytest.mark.asyncio
    async def test_default_is_database(self, db_service):
        storage = await create_session_storage(ConfigData(), db_service)
        assert isinstance(storage, DatabaseSessionStorage)

    @pytest.mark.asyncio
    async def test_memory_backend(self, db_service):
        config = ConfigData()
        config.session_storage.backend = "memory"
        assert isinstance(await create_session_storage(config, db_service), InMemorySessionStorage)

    @pytest.mark.asyncio
    async def test_redis_without_url_is_an_error(self, db_service):
        config = ConfigData()
        config.session_storage.backend = "redis"
        with pytest.raises(RuntimeError):
            await create_session_storage(config, db_service)
