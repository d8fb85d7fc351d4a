"""Session storage interface and implementations.

Provides a unified interface for persisting browser sessions with a
database-backed default, a Redis backend and an in-memory backend for tests
and local development.
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import delete
from sqlmodel import col

from src.federation.core.services.database.db_session import DbSessionService
from src.federation.entities.session import SessionTable
from src.federation.runtime.config.config_data import ConfigData

T = TypeVar("T", bound=BaseModel)


class SessionStorage(ABC):
    """Abstract interface for session storage backends."""

    @abstractmethod
    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Store a session with TTL.

        Args:
            key: Session identifier
            value: Session data (Pydantic model)
            ttl_seconds: Time to live in seconds
        """

    @abstractmethod
    async def get(self, key: str, model_class: type[T]) -> T | None:
        """Retrieve a session.

        Args:
            key: Session identifier
            model_class: Pydantic model class to deserialize to

        Returns:
            Session data or None if not found/expired
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a session."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a session exists and has not expired."""

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Clean up expired sessions.

        Returns:
            Number of sessions cleaned up
        """


class InMemorySessionStorage(SessionStorage):
    """In-memory session storage with TTL support."""

    def __init__(self):
        self._data: dict[str, dict[str, Any]] = {}

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Store session in memory with expiration."""
        self._data[key] = {
            "data": json.loads(value.model_dump_json()),
            "expires_at": time.time() + ttl_seconds,
        }

    async def get(self, key: str, model_class: type[T]) -> T | None:
        """Retrieve session from memory if not expired."""
        entry = self._data.get(key)
        if entry is None:
            return None

        if time.time() > entry["expires_at"]:
            del self._data[key]
            return None

        try:
            return model_class.model_validate(entry["data"])
        except ValueError:
            # Clean up corrupted data
            del self._data[key]
            return None

    async def delete(self, key: str) -> None:
        """Delete session from memory."""
        self._data.pop(key, None)

    async def exists(self, key: str) -> bool:
        """Check if session exists and is not expired."""
        entry = self._data.get(key)
        if entry is None:
            return False

        if time.time() > entry["expires_at"]:
            del self._data[key]
            return False

        return True

    async def cleanup_expired(self) -> int:
        """Remove expired sessions from memory."""
        now = time.time()
        expired_keys = [
            key for key, entry in self._data.items() if now > entry["expires_at"]
        ]
        for key in expired_keys:
            del self._data[key]
        return len(expired_keys)


class DatabaseSessionStorage(SessionStorage):
    """Sessions persisted in the ``sessions`` table."""

    def __init__(self, db_service: DbSessionService):
        self._db = db_service

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        expires_at = int(time.time()) + ttl_seconds
        with self._db.session_scope() as db:
            row = db.get(SessionTable, key)
            if row is None:
                row = SessionTable(id=key, data=value.model_dump_json(), expires_at=expires_at)
            else:
                row.data = value.model_dump_json()
                row.expires_at = expires_at
            db.add(row)

    async def get(self, key: str, model_class: type[T]) -> T | None:
        with self._db.session_scope() as db:
            row = db.get(SessionTable, key)
            if row is None:
                return None
            if time.time() > row.expires_at:
                db.delete(row)
                return None
            data = row.data

        try:
            return model_class.model_validate_json(data)
        except ValueError:
            logger.warning("Discarding unreadable session row")
            await self.delete(key)
            return None

    async def delete(self, key: str) -> None:
        with self._db.session_scope() as db:
            row = db.get(SessionTable, key)
            if row is not None:
                db.delete(row)

    async def exists(self, key: str) -> bool:
        with self._db.session_scope() as db:
            row = db.get(SessionTable, key)
            return row is not None and time.time() <= row.expires_at

    async def cleanup_expired(self) -> int:
        with self._db.session_scope() as db:
            result = db.execute(
                delete(SessionTable).where(col(SessionTable.expires_at) < int(time.time()))
            )
            return result.rowcount or 0


class RedisSessionStorage(SessionStorage):
    """Redis-based session storage with serialization."""

    def __init__(self, redis_client):
        self._redis = redis_client

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Store session in Redis with TTL."""
        try:
            await self._redis.setex(key, ttl_seconds, value.model_dump_json())
        except Exception as e:
            raise RuntimeError(f"Redis set failed: {e}") from e

    async def get(self, key: str, model_class: type[T]) -> T | None:
        """Retrieve session from Redis."""
        try:
            data = await self._redis.get(key)
        except Exception as e:
            raise RuntimeError(f"Redis get failed: {e}") from e

        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            return model_class.model_validate_json(data)
        except ValueError:
            await self.delete(key)
            return None

    async def delete(self, key: str) -> None:
        """Delete session from Redis."""
        try:
            await self._redis.delete(key)
        except Exception as e:
            raise RuntimeError(f"Redis delete failed: {e}") from e

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._redis.exists(key))
        except Exception as e:
            raise RuntimeError(f"Redis exists failed: {e}") from e

    async def cleanup_expired(self) -> int:
        """Redis handles expiration automatically."""
        return 0

    async def ping(self) -> bool:
        """Test Redis connection health."""
        try:
            await self._redis.ping()
            return True
        except Exception:
            return False


async def create_session_storage(
    config: ConfigData, db_service: DbSessionService
) -> SessionStorage:
    """Build the configured session storage backend.

    A configured but unreachable Redis falls back to the database outside
    production and is fatal in production.
    """
    backend = config.session_storage.backend

    if backend == "memory":
        logger.warning("Session storage: in-memory (sessions are lost on restart)")
        return InMemorySessionStorage()

    if backend == "redis":
        import redis.asyncio as redis

        if not config.redis.url:
            raise RuntimeError("session_storage.backend is 'redis' but redis.url is empty")

        client = redis.from_url(
            config.redis.connection_string,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        redis_storage = RedisSessionStorage(client)
        if await redis_storage.ping():
            logger.info("Session storage: Redis connected")
            return redis_storage
        if config.app.environment == "production":
            raise RuntimeError("Redis session storage unavailable")
        logger.warning("Redis unavailable, using database session storage")

    logger.info("Session storage: database")
    return DatabaseSessionStorage(db_service)
