"""Session database table model."""

from sqlalchemy import BigInteger, Column, String, Text
from sqlmodel import Field, SQLModel


class SessionTable(SQLModel, table=True):
    """Generic key/value session store row with a TTL-based expiry column."""

    __tablename__ = "sessions"

    id: str = Field(sa_column=Column(String(255), primary_key=True))
    data: str = Field(sa_column=Column(Text, nullable=False))
    expires_at: int = Field(
        sa_column=Column(BigInteger, nullable=False, index=True),
        description="Expiry as a Unix timestamp",
    )
