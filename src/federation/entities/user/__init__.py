"""User entity module.

- User: Domain entity
- UserTable: Database persistence model
- UserRepository: Data access layer
"""

from .entity import LOCAL_PROVIDER, User
from .repository import UserRepository
from .table import UserTable

__all__ = ["LOCAL_PROVIDER", "User", "UserRepository", "UserTable"]
