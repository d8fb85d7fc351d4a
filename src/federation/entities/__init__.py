"""Entities module with entity-centric structure.

Each entity has its own package containing:
- entity.py: Domain model
- table.py: Database persistence model
- repository.py: Data access layer
"""

from .session import SessionTable
from .user import LOCAL_PROVIDER, User, UserRepository, UserTable

__all__ = [
    "LOCAL_PROVIDER",
    "SessionTable",
    "User",
    "UserRepository",
    "UserTable",
]
