from collections.abc import Mapping
from typing import Any

from src.federation.core.errors import MalformedIdentityError
from src.federation.core.models import ExternalIdentity
from src.federation.core.services.providers.standard import OAuth2ProviderAdapter

PROFILE_FIELDS = "id,email,first_name,last_name,picture.type(large)"


class FacebookProviderAdapter(OAuth2ProviderAdapter):
    """Facebook Login via the Graph API."""

    name = "facebook"
    scope_separator = ","

    async def fetch_profile(self, access_token: str) -> dict[str, Any]:
        profile = await self._get_json(
            self.config.userinfo_endpoint,
            params={"fields": PROFILE_FIELDS, "access_token": access_token},
        )
        if not isinstance(profile, dict):
            raise MalformedIdentityError("facebook profile is not an object")
        return profile

    def map_profile(self, profile: Mapping[str, Any]) -> ExternalIdentity:
        picture = profile.get("picture")
        avatar_url = None
        if isinstance(picture, dict) and isinstance(picture.get("data"), dict):
            avatar_url = picture["data"].get("url")

        email = profile.get("email")
        return ExternalIdentity(
            provider=self.name,
            subject_id=self._require_subject(profile, "id"),
            email=email,
            # Graph only exposes confirmed addresses
            email_verified=True if email else None,
            first_name=profile.get("first_name"),
            last_name=profile.get("last_name"),
            avatar_url=avatar_url,
        )
