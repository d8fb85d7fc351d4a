from dataclasses import dataclass

from src.federation.core.services import (
    DbSessionService,
    IdentityResolver,
    LoginFlow,
    ProviderRegistry,
    SessionManager,
    StateGuard,
)
from src.federation.core.storage import SessionStorage
from src.federation.runtime.config.config_data import ConfigData


@dataclass
class ApplicationDependencies:
    config: ConfigData
    database_service: DbSessionService
    session_storage: SessionStorage
    session_manager: SessionManager
    provider_registry: ProviderRegistry
    state_guard: StateGuard
    identity_resolver: IdentityResolver
    login_flow: LoginFlow


async def build_dependencies(config: ConfigData) -> ApplicationDependencies:
    """Wire every service from ``config``; raises on invalid provider secrets."""
    from src.federation.core.services import build_registry
    from src.federation.core.storage import create_session_storage

    database_service = DbSessionService(config.database)
    if config.database.create_tables:
        database_service.create_all()

    session_storage = await create_session_storage(config, database_service)
    session_manager = SessionManager.from_config(session_storage, config)
    registry = build_registry(config)
    state_guard = StateGuard(config.security.flow_state_ttl_seconds)
    resolver = IdentityResolver(
        database_service,
        link_requires_verified_email=config.federation.link_requires_verified_email,
    )

    return ApplicationDependencies(
        config=config,
        database_service=database_service,
        session_storage=session_storage,
        session_manager=session_manager,
        provider_registry=registry,
        state_guard=state_guard,
        identity_resolver=resolver,
        login_flow=LoginFlow(registry, state_guard, resolver, session_manager),
    )
