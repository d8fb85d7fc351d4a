from .session_storage import (
    DatabaseSessionStorage,
    InMemorySessionStorage,
    RedisSessionStorage,
    SessionStorage,
    create_session_storage,
)

__all__ = [
    "DatabaseSessionStorage",
    "InMemorySessionStorage",
    "RedisSessionStorage",
    "SessionStorage",
    "create_session_storage",
]
