"""
database.py — Record Store
Owns the single embedded database connection, schema bootstrap, versioned
migrations and the transaction / raw query primitives used by every service.
"""

import os
import uuid
import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, event, select, text, func
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL, SCHEMA_VERSION, SQL_ECHO, LOG_LEVEL
from errors import (
    StorageUnavailable,
    StorageClosed,
    SchemaVersionError,
    constraint_violation_from,
)

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

Base = declarative_base()

VERSION_KEY = "version"


def generate_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # ON DELETE CASCADE / SET NULL only fire with this pragma on
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _create_engine(url: str, echo: bool):
    engine_args = {"echo": echo}
    if _is_sqlite(url):
        # One local user session: every service shares the same connection
        engine_args["connect_args"] = {"check_same_thread": False}
        engine_args["poolclass"] = StaticPool
    engine = create_engine(url, **engine_args)
    if _is_sqlite(url):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _read_version(conn) -> int:
    from models.metadata import SchemaMetadata

    value = conn.execute(
        select(SchemaMetadata.value).where(SchemaMetadata.key == VERSION_KEY)
    ).scalar()
    return int(value) if value is not None else 0


class RecordStore:
    """Explicitly constructed store with an open → use → close lifecycle."""

    def __init__(self, url: str = DATABASE_URL, schema_version: int = SCHEMA_VERSION, echo: bool = SQL_ECHO):
        self.url = url
        self.target_version = schema_version
        self.echo = echo
        self._engine = None
        self._session: Session | None = None
        self._initialized = False
        self._closed = False
        self._in_transaction = False

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    @property
    def is_initialized(self) -> bool:
        return self._initialized and not self._closed

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def engine(self):
        self._check_open()
        return self._engine

    @property
    def session(self) -> Session:
        self._check_open()
        return self._session

    def _check_open(self):
        if self._closed:
            raise StorageClosed("Record store has been closed")
        if not self._initialized:
            raise StorageUnavailable("Database not initialized. Call initialize() first.")

    def _prepare_path(self):
        """Create the data/ directory for file-backed SQLite databases."""
        if not _is_sqlite(self.url):
            return
        database = make_url(self.url).database
        if not database or database == ":memory:" or database.startswith("file:"):
            return
        parent = os.path.dirname(os.path.abspath(database))
        os.makedirs(parent, exist_ok=True)

    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """Open the connection, create tables and run pending migrations. Idempotent."""
        if self._closed:
            raise StorageClosed("Record store has been closed")
        if self._initialized:
            return

        # Import all models so they register with Base.metadata
        import models  # noqa: F401
        from models.metadata import SchemaMetadata
        from migrations import run_migrations

        try:
            self._prepare_path()
            engine = _create_engine(self.url, self.echo)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to open database: {e}")
            raise StorageUnavailable(f"Failed to open database at {self.url}: {e}") from e

        try:
            with engine.begin() as conn:
                SchemaMetadata.__table__.create(conn, checkfirst=True)
                current_version = _read_version(conn)

            if current_version > self.target_version:
                raise SchemaVersionError(
                    f"Unsupported database schema version: {current_version} (expected {self.target_version})"
                )

            Base.metadata.create_all(bind=engine)

            if current_version < self.target_version:
                run_migrations(engine, current_version, self.target_version)
        except SchemaVersionError:
            engine.dispose()
            raise
        except SQLAlchemyError as e:
            engine.dispose()
            logger.error(f"Error during database initialization: {e}")
            raise StorageUnavailable(f"Failed to initialize database: {e}") from e

        self._engine = engine
        self._session = Session(engine, expire_on_commit=False)
        self._initialized = True
        logger.info("Database initialized successfully.")

    def close(self) -> None:
        """Release the session and connection. Later calls raise StorageClosed."""
        if self._closed:
            return
        if self._session is not None:
            self._session.close()
        if self._engine is not None:
            self._engine.dispose()
        self._session = None
        self._engine = None
        self._closed = True
        logger.info("Database connection closed")

    # ------------------------------------------------------------------
    @contextmanager
    def transaction(self):
        """Scope a unit of work: commit on success, roll everything back on error.

        Nested scopes join the outermost one.
        """
        session = self.session
        if self._in_transaction:
            yield session
            return

        self._in_transaction = True
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Transaction rolled back: {e}")
            raise
        finally:
            self._in_transaction = False

    def run_in_transaction(self, body, *args, **kwargs):
        """Run body(*args, **kwargs) atomically and return its result."""
        with self.transaction():
            return body(*args, **kwargs)

    def _rollback_unless_in_transaction(self):
        if not self._in_transaction:
            self._session.rollback()

    def _commit_unless_in_transaction(self):
        if not self._in_transaction:
            self._session.commit()

    # ------------------------------------------------------------------
    def execute(self, statement, params: dict | None = None) -> int:
        """Run a write statement (text SQL with :named params, or a SQLAlchemy
        statement) and return the affected row count."""
        session = self.session
        if isinstance(statement, str):
            statement = text(statement)
        try:
            result = session.execute(statement, params or {})
            rowcount = result.rowcount
            self._commit_unless_in_transaction()
        except IntegrityError as e:
            self._rollback_unless_in_transaction()
            raise constraint_violation_from(e) from e
        except SQLAlchemyError:
            self._rollback_unless_in_transaction()
            raise
        return rowcount

    def _read(self, statement, params: dict | None = None):
        session = self.session
        if isinstance(statement, str):
            statement = text(statement)
        try:
            return session.execute(statement, params or {})
        except SQLAlchemyError:
            self._rollback_unless_in_transaction()
            raise

    def rows(self, statement, params: dict | None = None):
        """Run a read statement and return its result for tuple unpacking."""
        return self._read(statement, params)

    def query(self, statement, params: dict | None = None) -> list:
        """Run a read statement and return its rows as mappings."""
        return list(self._read(statement, params).mappings().all())

    def scalars(self, statement) -> list:
        """Run an ORM select and return the mapped objects."""
        return list(self._read(statement).scalars().all())

    def scalar(self, statement, params: dict | None = None):
        return self._read(statement, params).scalar()

    def add(self, instance):
        """Insert an ORM object, flushing immediately so constraint errors surface here.

        A failed insert leaves the session usable: the instance is discarded and,
        outside a transaction, the session rolled back.
        """
        session = self.session
        try:
            session.add(instance)
            session.flush()
            self._commit_unless_in_transaction()
        except IntegrityError as e:
            self._discard(instance)
            raise constraint_violation_from(e) from e
        except SQLAlchemyError:
            self._discard(instance)
            raise
        return instance

    def _discard(self, instance):
        self._rollback_unless_in_transaction()
        if instance in self._session:
            self._session.expunge(instance)

    # ------------------------------------------------------------------
    def schema_version(self) -> int:
        from models.metadata import SchemaMetadata

        value = self.scalar(select(SchemaMetadata.value).where(SchemaMetadata.key == VERSION_KEY))
        return int(value) if value is not None else 0

    def clear_all_data(self) -> None:
        """Delete every record, children before parents."""
        with self.transaction():
            for table in ("tasks", "goals", "streaks", "users"):
                self.execute(f"DELETE FROM {table}")
        logger.info("All data cleared successfully")

    def stats(self) -> dict:
        """Row counts per table plus the approximate database size in bytes."""
        from models import User, Goal, Task, Streak

        stats = {}
        for name, model in (("users", User), ("goals", Goal), ("tasks", Task), ("streaks", Streak)):
            stats[name] = self.scalar(select(func.count()).select_from(model))

        if _is_sqlite(self.url):
            page_count = self.scalar("PRAGMA page_count")
            page_size = self.scalar("PRAGMA page_size")
            stats["size"] = (page_count or 0) * (page_size or 0)
        return stats
