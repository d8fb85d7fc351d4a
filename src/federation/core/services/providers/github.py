from collections.abc import Mapping
from typing import Any

from loguru import logger

from src.federation.core.errors import ProviderRejectedError
from src.federation.core.models import ExternalIdentity
from src.federation.core.services.providers.standard import OAuth2ProviderAdapter
from src.federation.runtime.config.config_data import GitHubProviderConfig

GITHUB_API_HEADERS = {"Accept": "application/vnd.github+json"}


class GitHubProviderAdapter(OAuth2ProviderAdapter):
    """GitHub OAuth apps.

    The profile only carries an email when the user made one public, so a
    missing email is looked up on the emails endpoint (primary and
    verified first).
    """

    name = "github"
    config: GitHubProviderConfig

    async def fetch_profile(self, access_token: str) -> dict[str, Any]:
        headers = {**GITHUB_API_HEADERS, "Authorization": f"Bearer {access_token}"}
        profile = await self._get_json(self.config.userinfo_endpoint, headers=headers)
        profile = dict(profile) if isinstance(profile, dict) else {}

        if not profile.get("email"):
            try:
                emails = await self._get_json(self.config.emails_endpoint, headers=headers)
            except ProviderRejectedError:
                logger.bind(provider=self.name).info("Email lookup not permitted")
                emails = []
            email, verified = pick_github_email(emails)
            profile["email"] = email
            profile["email_verified"] = verified
        return profile

    def map_profile(self, profile: Mapping[str, Any]) -> ExternalIdentity:
        first_name, last_name = split_name(profile.get("name"))
        return ExternalIdentity(
            provider=self.name,
            subject_id=self._require_subject(profile, "id"),
            email=profile.get("email"),
            email_verified=profile.get("email_verified"),
            first_name=first_name,
            last_name=last_name,
            avatar_url=profile.get("avatar_url"),
        )


def pick_github_email(emails: Any) -> tuple[str | None, bool | None]:
    if not isinstance(emails, list):
        return None, None
    candidates = [e for e in emails if isinstance(e, dict) and e.get("email")]
    if not candidates:
        return None, None
    candidates.sort(key=lambda e: (not e.get("primary"), not e.get("verified")))
    best = candidates[0]
    return best["email"], bool(best.get("verified"))


def split_name(name: Any) -> tuple[str | None, str | None]:
    if not isinstance(name, str) or not name.strip():
        return None, None
    first, _, last = name.strip().partition(" ")
    return first, last.strip() or None
