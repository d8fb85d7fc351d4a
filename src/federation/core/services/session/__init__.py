from .session_manager import SessionManager
from .state_guard import StateGuard

__all__ = ["SessionManager", "StateGuard"]
