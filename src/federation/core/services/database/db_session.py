"""Database engine and session factory used across the application."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy import StaticPool, text
from sqlmodel import Session, SQLModel, create_engine

from src.federation.runtime.config.config_data import DatabaseConfig


class DbSessionService:
    def __init__(self, db_config: DatabaseConfig):
        """Initialize the shared database engine and session factory."""

        logger.info("Setting up database engine and session factory")
        self._config = db_config
        self._engine = create_engine(db_config.url, **self._get_engine_kwargs(db_config))

    def _get_engine_kwargs(self, db_config: DatabaseConfig) -> dict[str, Any]:
        """Get database-specific engine arguments."""
        if db_config.url.startswith("sqlite"):
            kwargs: dict[str, Any] = {
                "connect_args": {"check_same_thread": False, "timeout": 20},
                "echo": False,
            }
            # An in-memory database only exists on a single connection
            if ":memory:" in db_config.url or db_config.url in ("sqlite://", "sqlite:///"):
                kwargs["poolclass"] = StaticPool
            return kwargs

        connect_args: dict[str, Any] = {}
        if "postgresql" in db_config.url:
            connect_args = {"application_name": "identity_federation", "connect_timeout": 30}

        return {
            "pool_size": db_config.pool_size,
            "max_overflow": db_config.max_overflow,
            "pool_timeout": db_config.pool_timeout,
            "pool_recycle": db_config.pool_recycle,
            "pool_pre_ping": True,
            "echo": False,
            "connect_args": connect_args,
        }

    @property
    def engine(self):
        return self._engine

    def create_all(self) -> None:
        """Create all database tables."""
        from src.federation.entities import SessionTable, UserTable  # noqa: F401

        SQLModel.metadata.create_all(self._engine)
        logger.info("Database tables ensured")

    def get_session(self) -> Session:
        """Return a new SQLModel session bound to the shared engine."""
        return Session(self._engine, expire_on_commit=False, autoflush=True)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Run a unit of work: commit on success, roll back on error."""
        db = self.get_session()
        try:
            yield db
            db.commit()
        except Exception as e:
            db.rollback()
            logger.bind(error_type=type(e).__name__).error("Database transaction failed")
            raise
        finally:
            db.close()

    def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.bind(error_type=type(e).__name__).error("Database health check failed")
            return False

    def dispose(self) -> None:
        self._engine.dispose()
