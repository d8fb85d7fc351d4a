"""Map external identities onto durable local accounts."""

from __future__ import annotations

from loguru import logger
from sqlalchemy.exc import IntegrityError

from src.federation.core.models import ExternalIdentity
from src.federation.core.security import hash_password, verify_password
from src.federation.core.services.database.db_session import DbSessionService
from src.federation.entities.user import LOCAL_PROVIDER, User, UserRepository

# Attempts before a unique-constraint race is reported to the caller
_RESOLVE_ATTEMPTS = 2


class IdentityResolver:
    """Find, link or create the local user for an external identity.

    Lookup order:

    1. ``(provider, subject_id)``: the returning user. Non-null identity
       fields refresh the stored profile; nulls never erase data.
    2. ``email``: the same person arriving through another provider. The
       existing account is re-pointed at the new identity (row locked for
       the duration of the transaction).
    3. Otherwise a new account with a unique username.

    Each resolution runs in one transaction. Two concurrent first logins for
    the same identity race on the ``(provider, provider_subject_id)`` unique
    constraint; the loser rolls back and re-reads the winner's row.
    """

    def __init__(
        self, db_service: DbSessionService, *, link_requires_verified_email: bool = False
    ) -> None:
        self._db = db_service
        self._link_requires_verified_email = link_requires_verified_email

    def resolve(self, identity: ExternalIdentity) -> User:
        for attempt in range(1, _RESOLVE_ATTEMPTS + 1):
            try:
                with self._db.session_scope() as db:
                    return self._resolve(UserRepository(db), identity)
            except IntegrityError:
                if attempt == _RESOLVE_ATTEMPTS:
                    raise
                logger.bind(provider=identity.provider).info(
                    "Concurrent first login detected; re-reading account"
                )
        raise AssertionError("unreachable")

    def _resolve(self, repo: UserRepository, identity: ExternalIdentity) -> User:
        log = logger.bind(provider=identity.provider)

        user = repo.get_by_provider_subject(identity.provider, identity.subject_id)
        if user is not None:
            if self._refresh_profile(user, identity):
                user = repo.update(user)
            log.bind(user_id=user.id).info("Returning user resolved")
            return user

        if identity.email:
            existing = repo.get_by_email(identity.email, for_update=True)
            if existing is not None and self._may_link(existing, identity):
                previous_provider = existing.provider
                existing.provider = identity.provider
                existing.provider_subject_id = identity.subject_id
                if identity.avatar_url:
                    existing.avatar_url = identity.avatar_url
                existing.first_name = existing.first_name or identity.first_name
                existing.last_name = existing.last_name or identity.last_name
                linked = repo.update(existing)
                log.bind(user_id=linked.id, previous_provider=previous_provider).info(
                    "Linked identity to existing account by email"
                )
                return linked

        created = repo.create(
            User(
                username=self._unique_username(repo, identity),
                provider=identity.provider,
                provider_subject_id=identity.subject_id,
                email=identity.email,
                first_name=identity.first_name,
                last_name=identity.last_name,
                avatar_url=identity.avatar_url,
            )
        )
        log.bind(user_id=created.id).info("Created account for new identity")
        return created

    def _may_link(self, existing: User, identity: ExternalIdentity) -> bool:
        if not self._link_requires_verified_email or identity.email_verified:
            return True
        logger.bind(provider=identity.provider, user_id=existing.id).warning(
            "Email match without verified email; not linking"
        )
        return False

    @staticmethod
    def _refresh_profile(user: User, identity: ExternalIdentity) -> bool:
        changed = False
        for field in ("email", "first_name", "last_name", "avatar_url"):
            value = getattr(identity, field)
            if value is not None and value != getattr(user, field):
                setattr(user, field, value)
                changed = True
        return changed

    @staticmethod
    def _unique_username(repo: UserRepository, identity: ExternalIdentity) -> str:
        base = identity.email or f"{identity.provider}_{identity.subject_id}"
        candidate = base
        suffix = 1
        while repo.username_exists(candidate):
            suffix += 1
            candidate = f"{base}_{suffix}"
        return candidate

    # ------------------------------------------------------------------
    # Local accounts
    # ------------------------------------------------------------------

    def authenticate_local(self, username: str, password: str) -> User | None:
        """Return the user for valid credentials, ``None`` otherwise.

        Unknown users and wrong passwords are indistinguishable to callers.
        """
        if not username or not password:
            return None
        with self._db.session_scope() as db:
            user = UserRepository(db).get_by_username(username)
        password_hash = user.password_hash if user is not None else None
        if not verify_password(password, password_hash) or user is None:
            logger.info("Local login rejected")
            return None
        logger.bind(user_id=user.id).info("Local login accepted")
        return user

    def create_local_user(
        self,
        username: str,
        password: str,
        *,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        with self._db.session_scope() as db:
            repo = UserRepository(db)
            if repo.username_exists(username):
                raise ValueError(f"Username {username!r} is already taken")
            user = repo.create(
                User(
                    username=username,
                    provider=LOCAL_PROVIDER,
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                    password_hash=hash_password(password),
                )
            )
        logger.bind(user_id=user.id).info("Local account created")
        return user

    def seed_demo_account(
        self,
        username: str,
        password: str,
        *,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Create the demo account unless it already exists."""
        with self._db.session_scope() as db:
            existing = UserRepository(db).get_by_username(username)
        if existing is not None:
            logger.bind(user_id=existing.id).debug("Demo account already present")
            return existing
        return self.create_local_user(
            username, password, email=email, first_name=first_name, last_name=last_name
        )

    def get_user(self, user_id: str) -> User | None:
        with self._db.session_scope() as db:
            return UserRepository(db).get(user_id)
