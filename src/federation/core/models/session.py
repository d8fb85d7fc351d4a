"""Session models persisted through the session storage."""

import time

from pydantic import BaseModel, Field


class OAuthFlowState(BaseModel):
    """Pending login flow bound to a session; single use."""

    state_token: str = Field(description="Opaque CSRF state sent to the provider")
    provider: str = Field(description="Provider the flow was started for")
    created_at: int = Field(description="Creation timestamp")

    def is_expired(self, ttl_seconds: int) -> bool:
        return time.time() > self.created_at + ttl_seconds


class AuthSession(BaseModel):
    """Server-side browser session.

    Anonymous until ``user_id`` is set by a successful login. Only the user
    id is stored; the full user is rehydrated from the database per request.
    """

    id: str = Field(description="Session identifier")
    user_id: str | None = Field(default=None, description="Authenticated user ID")
    created_at: int = Field(description="Creation timestamp")
    last_accessed_at: int = Field(description="Last access timestamp")
    expires_at: int = Field(description="Expiration timestamp")
    oauth_flow: OAuthFlowState | None = Field(
        default=None, description="Pending login flow, if any"
    )

    @classmethod
    def create(cls, session_id: str, max_age: int) -> "AuthSession":
        """Create a new anonymous session with timestamps."""
        now = int(time.time())
        return cls(
            id=session_id,
            created_at=now,
            last_accessed_at=now,
            expires_at=now + max_age,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def is_expired(self) -> bool:
        """Check if session is expired."""
        return time.time() > self.expires_at

    def touch(self, max_age: int) -> None:
        """Slide the expiry window forward from now."""
        now = int(time.time())
        self.last_accessed_at = now
        self.expires_at = now + max_age
