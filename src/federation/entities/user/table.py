"""User database table model."""

from sqlalchemy import Column, String, UniqueConstraint
from sqlmodel import Field

from src.federation.entities._base import EntityTable


class UserTable(EntityTable, table=True):
    """Database persistence model for users.

    At most one row exists per ``(provider, provider_subject_id)``; the
    identity resolver relies on this constraint to settle concurrent
    first logins.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_subject_id", name="uq_users_provider_subject"
        ),
    )

    username: str = Field(sa_column=Column(String(320), nullable=False, unique=True))
    provider: str = Field(sa_column=Column(String(32), nullable=False, index=True))
    provider_subject_id: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    email: str | None = Field(
        default=None, sa_column=Column(String(320), nullable=True, index=True)
    )
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    password_hash: str | None = None
