"""Provider-agnostic identity produced by a successful code exchange."""

from pydantic import BaseModel, Field, field_validator


class ExternalIdentity(BaseModel):
    """Normalized identity; consumed immediately by the identity resolver."""

    provider: str = Field(description="Provider name, e.g. 'google'")
    subject_id: str = Field(description="Provider-scoped stable user identifier")
    email: str | None = Field(default=None)
    email_verified: bool | None = Field(
        default=None, description="Whether the provider asserts the email is verified"
    )
    first_name: str | None = Field(default=None)
    last_name: str | None = Field(default=None)
    avatar_url: str | None = Field(default=None)

    @field_validator("subject_id", mode="before")
    @classmethod
    def _coerce_subject(cls, value):
        # GitHub and Facebook return numeric ids
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("email", "first_name", "last_name", "avatar_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value
