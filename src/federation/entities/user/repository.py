"""User data access layer."""

from sqlmodel import Session, select

from src.federation.entities._base import utc_now
from src.federation.entities.user.entity import User
from src.federation.entities.user.table import UserTable


class UserRepository:
    """Data-access layer for users.

    The repository flushes but never commits; transaction boundaries belong
    to the caller.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, user_id: str) -> User | None:
        row = self._session.get(UserTable, user_id)
        if row is None:
            return None
        return User.model_validate(row, from_attributes=True)

    def get_by_provider_subject(self, provider: str, subject_id: str) -> User | None:
        statement = select(UserTable).where(
            (UserTable.provider == provider)
            & (UserTable.provider_subject_id == subject_id)
        )
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return User.model_validate(row, from_attributes=True)

    def get_by_email(self, email: str, *, for_update: bool = False) -> User | None:
        statement = (
            select(UserTable).where(UserTable.email == email).order_by(UserTable.created_at)
        )
        if for_update:
            statement = statement.with_for_update()
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return User.model_validate(row, from_attributes=True)

    def get_by_username(self, username: str) -> User | None:
        statement = select(UserTable).where(UserTable.username == username)
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return User.model_validate(row, from_attributes=True)

    def username_exists(self, username: str) -> bool:
        return self.get_by_username(username) is not None

    def create(self, user: User) -> User:
        row = UserTable(**user.model_dump())
        self._session.add(row)
        self._session.flush()
        return User.model_validate(row, from_attributes=True)

    def update(self, user: User) -> User:
        row = self._session.get(UserTable, user.id)
        if row is None:
            raise ValueError(f"User {user.id} not found")
        for field, value in user.model_dump(exclude={"id", "created_at"}).items():
            setattr(row, field, value)
        row.updated_at = utc_now()
        self._session.add(row)
        self._session.flush()
        return User.model_validate(row, from_attributes=True)
