"""FastAPI dependency implementations."""

from __future__ import annotations

from fastapi import Depends, Request

from src.federation.api.http.app_data import ApplicationDependencies
from src.federation.core.services import (
    IdentityResolver,
    LoginFlow,
    ProviderRegistry,
    SessionManager,
)
from src.federation.entities.user import User


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    return request.app.state.app_dependencies


def get_session_manager(
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> SessionManager:
    """Get the session manager instance."""
    return app_deps.session_manager


def get_provider_registry(
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> ProviderRegistry:
    """Get the registry of configured providers."""
    return app_deps.provider_registry


def get_identity_resolver(
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> IdentityResolver:
    return app_deps.identity_resolver


def get_login_flow(
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> LoginFlow:
    return app_deps.login_flow


def get_session_id(
    request: Request, sessions: SessionManager = Depends(get_session_manager)
) -> str | None:
    return request.cookies.get(sessions.cookie_name)


async def get_optional_user(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> User | None:
    """The signed-in user, or ``None`` for anonymous requests."""
    return await sessions.current_user(request, resolver.get_user)
