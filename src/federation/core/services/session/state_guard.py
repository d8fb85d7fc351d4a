"""CSRF protection for the redirect round trip to a provider."""

from __future__ import annotations

import hmac
import time

from loguru import logger

from src.federation.core.errors import InvalidStateError
from src.federation.core.models import AuthSession, OAuthFlowState
from src.federation.core.security import generate_state


class StateGuard:
    """Issue and consume single-use ``state`` values bound to a session.

    The pending flow is stored on the session itself, so a state can only
    be redeemed by the browser that started the flow. Validation consumes
    the pending flow before checking anything: a state never validates
    twice, whether or not the first attempt succeeded. Callers persist the
    session afterwards.
    """

    def __init__(self, ttl_seconds: int = 600) -> None:
        self.ttl_seconds = ttl_seconds

    def issue(self, session: AuthSession, provider: str) -> str:
        state = generate_state()
        session.oauth_flow = OAuthFlowState(
            state_token=state, provider=provider, created_at=int(time.time())
        )
        return state

    def validate(
        self, session: AuthSession | None, presented: str | None, provider: str
    ) -> None:
        flow = session.oauth_flow if session is not None else None
        if session is not None:
            session.oauth_flow = None

        log = logger.bind(provider=provider)
        if flow is None:
            log.warning("Callback without a pending login flow")
            raise InvalidStateError("No login is in progress for this session")

        if not presented or not hmac.compare_digest(
            flow.state_token.encode("utf-8"), presented.encode("utf-8")
        ):
            log.warning("Callback state does not match the pending flow")
            raise InvalidStateError("Login state mismatch")

        if flow.provider != provider:
            log.bind(expected_provider=flow.provider).warning(
                "Callback arrived for a different provider"
            )
            raise InvalidStateError("Login state was issued for another provider")

        if flow.is_expired(self.ttl_seconds):
            log.warning("Pending login flow expired")
            raise InvalidStateError("Login attempt expired, please try again")
