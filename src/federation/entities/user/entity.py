"""User domain entity."""

from typing import Any

from pydantic import Field

from src.federation.entities._base import Entity

LOCAL_PROVIDER = "local"


class User(Entity):
    """A durable local account.

    Federated users carry the provider name and the provider's subject id
    and never a password hash; local accounts use ``provider="local"`` and
    always have one.
    """

    username: str = Field(description="Unique login/display handle")
    provider: str = Field(description="Provider that last authenticated this user")
    provider_subject_id: str | None = Field(
        default=None, description="Provider-scoped stable subject identifier"
    )
    email: str | None = Field(default=None, description="User's email address")
    first_name: str | None = Field(default=None, description="User's first name")
    last_name: str | None = Field(default=None, description="User's last name")
    avatar_url: str | None = Field(default=None, description="Profile picture URL")
    password_hash: str | None = Field(
        default=None, description="argon2 hash, local accounts only", repr=False
    )

    @property
    def is_local(self) -> bool:
        return self.provider == LOCAL_PROVIDER

    def public_dict(self) -> dict[str, Any]:
        """Representation safe to hand to the front end."""
        return self.model_dump(mode="json", exclude={"password_hash"})
