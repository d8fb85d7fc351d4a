"""Orchestration of a federated login, one stage at a time.

A flow never raises to its caller for login failures: ``complete`` returns
either ``LoginSucceeded`` or ``LoginFailed`` carrying the error and the last
stage reached. Translating the outcome into HTTP is the router's job.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from src.federation.core.errors import (
    AuthError,
    MalformedIdentityError,
    ProviderRejectedError,
    ServerError,
)
from src.federation.core.models import AuthSession
from src.federation.core.services.providers.registry import ProviderRegistry
from src.federation.core.services.session.session_manager import SessionManager
from src.federation.core.services.session.state_guard import StateGuard
from src.federation.core.services.user.identity_resolver import IdentityResolver
from src.federation.entities.user import User


class FlowStage(str, Enum):
    IDLE = "idle"
    STARTED = "started"
    CALLBACK_RECEIVED = "callback_received"
    STATE_VALIDATED = "state_validated"
    TOKEN_EXCHANGED = "token_exchanged"
    IDENTITY_RESOLVED = "identity_resolved"
    LOGGED_IN = "logged_in"
    FAILED = "failed"


@dataclass(frozen=True)
class LoginStarted:
    redirect_url: str
    session: AuthSession


@dataclass(frozen=True)
class LoginSucceeded:
    user: User
    session: AuthSession


@dataclass(frozen=True)
class LoginFailed:
    error: AuthError
    stage: FlowStage

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message


LoginOutcome = LoginSucceeded | LoginFailed


class LoginFlow:
    def __init__(
        self,
        registry: ProviderRegistry,
        state_guard: StateGuard,
        resolver: IdentityResolver,
        sessions: SessionManager,
    ) -> None:
        self._registry = registry
        self._state_guard = state_guard
        self._resolver = resolver
        self._sessions = sessions

    async def start(self, provider: str, session_id: str | None) -> LoginStarted:
        """Issue a state for ``provider`` and return where to send the browser.

        Raises:
            ProviderNotConfiguredError: ``provider`` is not in the registry
            SessionError: the pending flow could not be stored
        """
        adapter = self._registry.require(provider)
        session = await self._sessions.load_or_create(session_id)
        state = self._state_guard.issue(session, provider)
        await self._sessions.save(session)
        logger.bind(provider=provider, stage=FlowStage.STARTED.value).info(
            "Login flow started"
        )
        return LoginStarted(
            redirect_url=adapter.build_authorization_url(state), session=session
        )

    async def complete(
        self, provider: str, session_id: str | None, params: Mapping[str, Any]
    ) -> LoginOutcome:
        """Run a callback through state validation, exchange, resolution and login.

        ``params`` holds the callback's query or form fields.
        """
        stage = FlowStage.CALLBACK_RECEIVED
        try:
            adapter = self._registry.require(provider)
            session = await self._sessions.load(session_id)
            try:
                self._state_guard.validate(session, params.get("state"), provider)
            finally:
                if session is not None:
                    # Persist the consumed flow so the state cannot be replayed
                    await self._sessions.save(session)
            stage = FlowStage.STATE_VALIDATED

            if params.get("error"):
                raise ProviderRejectedError(
                    provider,
                    error_code=str(params["error"]),
                    description=params.get("error_description"),
                )
            code = params.get("code")
            if not code:
                raise MalformedIdentityError("Callback did not include an authorization code")

            identity = await adapter.exchange_code_for_identity(code, params)
            stage = FlowStage.TOKEN_EXCHANGED

            user = self._resolver.resolve(identity)
            stage = FlowStage.IDENTITY_RESOLVED

            authenticated = await self._sessions.login(session, user.id)
            stage = FlowStage.LOGGED_IN
        except AuthError as e:
            return self._failed(provider, stage, e)
        except SQLAlchemyError as e:
            logger.bind(provider=provider, stage=stage.value).exception(
                "Database failure during login"
            )
            return self._failed(provider, stage, ServerError("Login could not be completed"), e)

        logger.bind(provider=provider, stage=stage.value, user_id=user.id).info(
            "Login succeeded"
        )
        return LoginSucceeded(user=user, session=authenticated)

    async def login_local(
        self, username: str, password: str, session_id: str | None
    ) -> LoginSucceeded | None:
        """Password login for local accounts; ``None`` for bad credentials."""
        user = self._resolver.authenticate_local(username, password)
        if user is None:
            return None
        previous = await self._sessions.load(session_id)
        session = await self._sessions.login(previous, user.id)
        return LoginSucceeded(user=user, session=session)

    @staticmethod
    def _failed(
        provider: str, stage: FlowStage, error: AuthError, cause: Exception | None = None
    ) -> LoginFailed:
        upstream = getattr(error, "error_code", None)
        logger.bind(
            provider=provider,
            stage=stage.value,
            error_code=error.code,
            upstream_error=upstream,
            cause=type(cause).__name__ if cause else None,
        ).warning("Login failed: {}", error.message)
        return LoginFailed(error=error, stage=stage)
