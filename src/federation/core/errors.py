"""Authentication error taxonomy.

Every failure of a login flow is an ``AuthError`` carrying a stable,
machine-readable ``code`` and a human-readable ``message``. The HTTP layer
turns these into ``/?error=<code>&message=<message>`` redirects; nothing in
the message may contain tokens, authorization codes or key material.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all authentication failures."""

    code = "auth_failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.code
        super().__init__(self.message)


class ConfigurationError(AuthError):
    """Missing or invalid secrets; never silently degraded."""

    code = "configuration_error"


class ProviderNotConfiguredError(AuthError):
    """The requested provider is unknown or lacks credentials."""

    code = "provider_not_configured"

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"{provider} login is not configured")


class InvalidStateError(AuthError):
    """CSRF state missing, mismatched, expired or replayed."""

    code = "invalid_state"


class ProviderRejectedError(AuthError):
    """The provider answered with an error (non-2xx or OAuth error parameter)."""

    code = "provider_rejected"

    def __init__(
        self,
        provider: str,
        error_code: str | None = None,
        description: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.error_code = error_code
        self.description = description
        self.status_code = status_code
        super().__init__(description or error_code or "provider rejected the request")


class ProviderUnavailableError(AuthError):
    """Transport failure or timeout talking to the provider."""

    code = "provider_unavailable"


class MalformedIdentityError(AuthError):
    """The provider response lacks required claims or cannot be parsed."""

    code = "malformed_identity"


class SessionError(AuthError):
    """The session store could not be read or written."""

    code = "session_error"


class ServerError(AuthError):
    """Unexpected failure while completing a login."""

    code = "server_error"
