"""Server-side browser sessions behind an opaque cookie."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Literal, TypeVar

from fastapi import Request
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from src.federation.core.errors import SessionError
from src.federation.core.models import AuthSession
from src.federation.core.security import generate_session_id
from src.federation.core.storage.session_storage import SessionStorage
from src.federation.entities.user import User
from src.federation.runtime.config.config_data import ConfigData

R = TypeVar("R")


class SessionManager:
    """Create, load, rotate and destroy sessions.

    Sessions slide: every save pushes ``expires_at`` out by ``max_age``.
    An authenticated session stores only the user id. Storage failures
    surface as ``SessionError``.
    """

    def __init__(
        self,
        storage: SessionStorage,
        *,
        max_age: int,
        cookie_name: str = "sid",
        secure: bool = False,
        samesite: Literal["lax", "strict", "none"] = "lax",
    ) -> None:
        self._storage = storage
        self.max_age = max_age
        self.cookie_name = cookie_name
        self.secure = secure
        self.samesite = samesite

    @classmethod
    def from_config(cls, storage: SessionStorage, config: ConfigData) -> SessionManager:
        security = config.security
        secure = (
            security.secure_cookies
            if security.secure_cookies is not None
            else config.app.is_https
        )
        samesite = security.cookie_samesite
        if samesite == "auto":
            # Cross-site form_post callbacks only carry SameSite=None cookies
            samesite = "none" if secure else "lax"
        if samesite == "none" and not secure:
            logger.warning("SameSite=None requires Secure cookies; using Lax")
            samesite = "lax"
        return cls(
            storage,
            max_age=config.app.session_max_age,
            cookie_name=security.session_cookie_name,
            secure=secure,
            samesite=samesite,
        )

    async def _call(self, action: str, operation: Awaitable[R]) -> R:
        try:
            return await operation
        except (RuntimeError, SQLAlchemyError, OSError) as e:
            logger.bind(action=action, error_type=type(e).__name__).error(
                "Session storage failure"
            )
            raise SessionError("Session store is unavailable") from e

    def start(self) -> AuthSession:
        """New anonymous session; persisted on first save."""
        return AuthSession.create(generate_session_id(), self.max_age)

    async def load(self, session_id: str | None) -> AuthSession | None:
        if not session_id:
            return None
        session = await self._call("load", self._storage.get(session_id, AuthSession))
        if session is None:
            return None
        if session.is_expired():
            await self._call("delete", self._storage.delete(session_id))
            return None
        return session

    async def load_or_create(self, session_id: str | None) -> AuthSession:
        """Return the caller's session, or a fresh unsaved anonymous one."""
        session = await self.load(session_id)
        return session if session is not None else self.start()

    async def save(self, session: AuthSession) -> None:
        session.touch(self.max_age)
        await self._call("save", self._storage.set(session.id, session, self.max_age))

    async def login(self, session: AuthSession | None, user_id: str) -> AuthSession:
        """Bind ``user_id`` to a new session id and retire the old one.

        Rotating the id on login prevents session fixation.
        """
        authenticated = self.start()
        authenticated.user_id = user_id
        await self.save(authenticated)
        if session is not None and session.id != authenticated.id:
            await self._call("delete", self._storage.delete(session.id))
        logger.bind(user_id=user_id).info("Session established")
        return authenticated

    async def logout(self, session_id: str | None) -> None:
        if not session_id:
            return
        await self._call("delete", self._storage.delete(session_id))

    async def authenticated_user_id(self, session_id: str | None) -> str | None:
        """User id for an authenticated session; refreshes its expiry."""
        session = await self.load(session_id)
        if session is None or not session.is_authenticated:
            return None
        await self.save(session)
        return session.user_id

    async def current_user(
        self, request: Request, load_user: Callable[[str], User | None]
    ) -> User | None:
        """The authenticated user behind the request's session cookie, if any."""
        user_id = await self.authenticated_user_id(request.cookies.get(self.cookie_name))
        if user_id is None:
            return None
        user = load_user(user_id)
        if user is None:
            logger.bind(user_id=user_id).warning("Session refers to a missing user")
        return user

    async def cleanup_expired(self) -> int:
        return await self._call("cleanup", self._storage.cleanup_expired())

    def cookie_params(self) -> dict[str, Any]:
        return {
            "key": self.cookie_name,
            "max_age": self.max_age,
            "path": "/",
            "httponly": True,
            "secure": self.secure,
            "samesite": self.samesite,
        }
