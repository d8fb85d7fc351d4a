"""Core services exports."""

from src.federation.core.services.credentials import (
    ClientAssertionGenerator,
    normalize_private_key,
)
from src.federation.core.services.database.db_session import DbSessionService
from src.federation.core.services.login_flow import (
    FlowStage,
    LoginFailed,
    LoginFlow,
    LoginOutcome,
    LoginStarted,
    LoginSucceeded,
)
from src.federation.core.services.providers import (
    ProviderAdapter,
    ProviderRegistry,
    build_registry,
)
from src.federation.core.services.session import SessionManager, StateGuard
from src.federation.core.services.user import IdentityResolver

__all__ = [
    "ClientAssertionGenerator",
    "DbSessionService",
    "FlowStage",
    "IdentityResolver",
    "LoginFailed",
    "LoginFlow",
    "LoginOutcome",
    "LoginStarted",
    "LoginSucceeded",
    "ProviderAdapter",
    "ProviderRegistry",
    "SessionManager",
    "StateGuard",
    "build_registry",
    "normalize_private_key",
]
