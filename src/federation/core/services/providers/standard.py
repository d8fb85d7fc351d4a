"""Authorization-code flow for providers that authenticate with a static secret."""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from pydantic import ValidationError

from src.federation.core.errors import MalformedIdentityError
from src.federation.core.models import ExternalIdentity
from src.federation.core.services.providers.base import ProviderAdapter
from src.federation.runtime.config.config_data import ProviderConfig


class OAuth2ProviderAdapter(ProviderAdapter):
    """Code -> access token -> profile endpoint -> ``map_profile``.

    Subclasses only describe how the provider's profile maps onto an
    ``ExternalIdentity`` and, where needed, tweak the requests.
    """

    scope_separator = " "

    def __init__(
        self, config: ProviderConfig, *, callback_url: str, timeout: float
    ) -> None:
        super().__init__(callback_url=callback_url, scopes=config.scopes, timeout=timeout)
        self.config = config

    def authorization_params(self, state: str) -> dict[str, str]:
        return {
            "client_id": self.config.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": self.scope_separator.join(self.scopes),
            "state": state,
        }

    def build_authorization_url(self, state: str) -> str:
        return f"{self.config.authorization_endpoint}?{urlencode(self.authorization_params(state))}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        tokens = await self._post_form(
            self.config.token_endpoint,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.callback_url,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
        )
        tokens = self._check_token_response(tokens)
        if not tokens.get("access_token"):
            raise MalformedIdentityError(f"{self.name} token response has no access_token")
        return tokens

    async def fetch_profile(self, access_token: str) -> dict[str, Any]:
        profile = await self._get_json(
            self.config.userinfo_endpoint,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not isinstance(profile, dict):
            raise MalformedIdentityError(f"{self.name} profile is not an object")
        return profile

    @abstractmethod
    def map_profile(self, profile: Mapping[str, Any]) -> ExternalIdentity:
        """Translate the provider's profile document."""

    async def exchange_code_for_identity(
        self, code: str, payload: Mapping[str, Any] | None = None
    ) -> ExternalIdentity:
        tokens = await self.exchange_code(code)
        profile = await self.fetch_profile(tokens["access_token"])
        return self._identity_from(profile)

    def _identity_from(self, profile: Mapping[str, Any]) -> ExternalIdentity:
        try:
            return self.map_profile(profile)
        except ValidationError as e:
            raise MalformedIdentityError(f"{self.name} profile is missing required fields") from e

    def _require_subject(self, profile: Mapping[str, Any], *keys: str) -> str:
        for key in keys:
            value = profile.get(key)
            if value not in (None, ""):
                return str(value)
        raise MalformedIdentityError(f"{self.name} profile has no user id")
