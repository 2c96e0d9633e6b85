"""
Database Engine and Metadata
SQLAlchemy Core engine factory with real transaction scopes on SQLite
"""

import logging
from typing import Optional

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import registry
from sqlalchemy.pool import StaticPool

from config.config import StorageConfig

logger = logging.getLogger(__name__)

# one registry tracks every table; its metadata is used to create them
mapper_registry = registry()
metadata: MetaData = mapper_registry.metadata

SQLITE_BEGIN_OPTION = "sqlite_begin"

# SQLSTATE codes for serialization failure and deadlock
_RETRYABLE_SQLSTATES = {"40001", "40P01"}
_RETRYABLE_SQLITE_MESSAGES = ("database is locked", "database is busy")


class StorageError(Exception):
    """Base exception for persistence operations"""
    pass


class SerializationConflictError(StorageError):
    """A concurrent transaction invalidated this one; safe to retry"""
    pass


def is_serialization_failure(exc: BaseException) -> bool:
    """Whether an exception is a retryable isolation conflict"""
    if isinstance(exc, SerializationConflictError):
        return True

    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate in _RETRYABLE_SQLSTATES:
            return True
        if isinstance(exc, OperationalError):
            message = str(orig).lower()
            return any(text in message for text in _RETRYABLE_SQLITE_MESSAGES)

    return False


def _install_sqlite_transaction_hooks(engine: Engine):
    """Let SQLAlchemy emit BEGIN itself so pysqlite scopes are real transactions"""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # disable pysqlite's own deferred BEGIN handling
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def uses_single_connection(engine: Engine) -> bool:
    """In-memory SQLite engines share one connection across every scope"""
    return isinstance(engine.pool, StaticPool)


def create_database_engine(config: Optional[StorageConfig] = None) -> Engine:
    """Create an engine for the configured database URL"""
    config = config or StorageConfig()
    url = config.database_url

    if url.startswith("sqlite"):
        kwargs = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": config.busy_timeout_seconds,
            }
        }
        if url in ("sqlite://", "sqlite:///:memory:"):
            # an in-memory database only exists on its one connection
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=config.echo, **kwargs)
        _install_sqlite_transaction_hooks(engine)
    else:
        engine = create_engine(url, echo=config.echo, pool_pre_ping=True)

    logger.info(f"Created {engine.dialect.name} engine for {engine.url!r}")
    return engine


def create_schema(engine: Engine):
    """Create any missing tables"""
    # table definitions register themselves on import
    from . import schemas  # noqa: F401

    metadata.create_all(bind=engine)
    logger.info(f"Ensured {len(metadata.tables)} tables exist")
