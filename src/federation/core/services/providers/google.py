from collections.abc import Mapping
from typing import Any

from src.federation.core.models import ExternalIdentity
from src.federation.core.services.providers.standard import OAuth2ProviderAdapter


class GoogleProviderAdapter(OAuth2ProviderAdapter):
    """Google OAuth 2.0; accepts both the v2 userinfo and the OIDC userinfo shapes."""

    name = "google"

    def authorization_params(self, state: str) -> dict[str, str]:
        params = super().authorization_params(state)
        params["prompt"] = "select_account"
        return params

    def map_profile(self, profile: Mapping[str, Any]) -> ExternalIdentity:
        verified = profile.get("email_verified", profile.get("verified_email"))
        return ExternalIdentity(
            provider=self.name,
            subject_id=self._require_subject(profile, "sub", "id"),
            email=profile.get("email"),
            email_verified=bool(verified) if verified is not None else None,
            first_name=profile.get("given_name"),
            last_name=profile.get("family_name"),
            avatar_url=profile.get("picture"),
        )
