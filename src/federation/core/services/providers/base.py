"""Provider adapter interface and the HTTP plumbing shared by all adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import httpx
from loguru import logger

from src.federation.core.errors import (
    MalformedIdentityError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from src.federation.core.models import ExternalIdentity


class ProviderAdapter(ABC):
    """One external identity provider.

    An adapter knows how to send a user to the provider and how to turn
    the authorization code that comes back into an ``ExternalIdentity``.
    Adapters hold configuration only and are safe to share between
    concurrent requests.
    """

    name: str
    def __init__(self, *, callback_url: str, scopes: list[str], timeout: float) -> None:
        self.callback_url = callback_url
        self.scopes = list(scopes)
        self.timeout = timeout

    @abstractmethod
    def build_authorization_url(self, state: str) -> str:
        """Return the provider URL that starts a login carrying ``state``."""

    @abstractmethod
    async def exchange_code_for_identity(
        self, code: str, payload: Mapping[str, Any] | None = None
    ) -> ExternalIdentity:
        """Redeem ``code`` and return the normalized identity.

        ``payload`` is the rest of the callback (query or form fields) for
        providers that deliver identity data alongside the code.

        Raises:
            ProviderUnavailableError: transport failure or timeout
            ProviderRejectedError: the provider answered with an error
            MalformedIdentityError: the answer lacks required claims
        """

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _post_form(
        self, url: str, data: Mapping[str, Any], headers: Mapping[str, str] | None = None
    ) -> Any:
        request_headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
            **(headers or {}),
        }
        return await self._send("POST", url, data=dict(data), headers=request_headers)

    async def _get_json(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        request_headers = {"Accept": "application/json", **(headers or {})}
        kwargs: dict[str, Any] = {"headers": request_headers}
        if params:
            kwargs["params"] = dict(params)
        return await self._send("GET", url, **kwargs)

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        log = logger.bind(provider=self.name, method=method, url=url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                if method == "POST":
                    response = await client.post(url, **kwargs)
                else:
                    response = await client.get(url, **kwargs)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._rejection(response) from e
        except httpx.HTTPError as e:
            log.bind(error_type=type(e).__name__).warning("Provider request failed")
            raise ProviderUnavailableError(f"{self.name} is unreachable") from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedIdentityError(f"{self.name} returned a non-JSON response") from e

    def _rejection(self, response: Any) -> ProviderRejectedError:
        error_code = description = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            # Facebook nests its error object
            if isinstance(error, dict):
                error_code = error.get("type") or error.get("code")
                description = error.get("message")
            else:
                error_code = error
                description = body.get("error_description") or body.get("message")

        status_code = getattr(response, "status_code", None)
        logger.bind(
            provider=self.name, status_code=status_code, upstream_error=error_code
        ).warning("Provider rejected request")
        return ProviderRejectedError(
            self.name,
            error_code=str(error_code) if error_code is not None else None,
            description=description,
            status_code=status_code,
        )

    def _check_token_response(self, tokens: Any) -> dict[str, Any]:
        """Reject OAuth error bodies that some providers return with a 200."""
        if not isinstance(tokens, dict):
            raise MalformedIdentityError(f"{self.name} token response is not an object")
        if tokens.get("error"):
            logger.bind(provider=self.name, upstream_error=tokens["error"]).warning(
                "Provider rejected code exchange"
            )
            raise ProviderRejectedError(
                self.name,
                error_code=str(tokens["error"]),
                description=tokens.get("error_description"),
            )
        return tokens
