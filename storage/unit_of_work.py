"""
Unit of Work
Read-only and serializable-writable transaction scopes over one connection
"""

import asyncio
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional, Type, TypeVar

from sqlalchemy.engine import Connection, Engine

from config.config import StorageConfig
from .database import SQLITE_BEGIN_OPTION, uses_single_connection
from .repositories import Repository

logger = logging.getLogger(__name__)

R = TypeVar('R', bound=Repository)
T = TypeVar('T')


class UnitOfWork:
    """One transaction scope; commits only when commit() is called"""

    def __init__(self, engine: Engine, writable: bool,
                 scope_lock: Optional[threading.Lock] = None):
        self.engine = engine
        self.writable = writable
        self.scope_lock = scope_lock
        self.connection: Optional[Connection] = None
        self._transaction = None
        self._repositories: Dict[type, Repository] = {}
        self._committed = False

    def _execution_options(self) -> Dict[str, str]:
        if self.engine.dialect.name == "sqlite":
            # IMMEDIATE takes the write lock up front so writers serialize
            return {SQLITE_BEGIN_OPTION: "IMMEDIATE" if self.writable else "DEFERRED"}
        if self.writable:
            return {"isolation_level": "SERIALIZABLE"}
        return {}

    def __enter__(self) -> 'UnitOfWork':
        # scopes sharing one DBAPI connection must not interleave
        if self.scope_lock is not None:
            self.scope_lock.acquire()
        try:
            self.connection = self.engine.connect()
            self.connection.execution_options(**self._execution_options())
            self._transaction = self.connection.begin()
        except Exception:
            if self.connection is not None:
                self.connection.close()
                self.connection = None
            if self.scope_lock is not None:
                self.scope_lock.release()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if self._transaction is not None and self._transaction.is_active:
                self._transaction.rollback()
        finally:
            self.connection.close()
            self.connection = None
            self._repositories.clear()
            if self.scope_lock is not None:
                self.scope_lock.release()
        return False

    def get_repository(self, repository_class: Type[R]) -> R:
        if self.connection is None:
            raise RuntimeError("Unit of work is not active")
        repository = self._repositories.get(repository_class)
        if repository is None:
            repository = repository_class(self.connection)
            self._repositories[repository_class] = repository
        return repository

    def commit(self):
        if not self.writable:
            raise RuntimeError("Cannot commit a read-only unit of work")
        if self._committed:
            raise RuntimeError("Unit of work already committed")
        self._transaction.commit()
        self._committed = True


class UnitOfWorkProvider:
    """Creates transaction scopes and runs blocking work off the event loop"""

    def __init__(self, engine: Engine, config: Optional[StorageConfig] = None):
        self.engine = engine
        self.config = config or StorageConfig()
        self.scope_lock: Optional[threading.Lock] = None
        if uses_single_connection(engine):
            self.scope_lock = threading.Lock()
            logger.info("Single-connection database; transaction scopes run one at a time")
        self.executor = ThreadPoolExecutor(
            max_workers=self.config.worker_threads,
            thread_name_prefix="reactions-db")

    def create_read_only(self) -> UnitOfWork:
        return UnitOfWork(self.engine, writable=False, scope_lock=self.scope_lock)

    def create_writable(self) -> UnitOfWork:
        return UnitOfWork(self.engine, writable=True, scope_lock=self.scope_lock)

    async def run(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """Execute a blocking database function on the worker pool"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor, functools.partial(fn, *args, **kwargs))

    def shutdown(self):
        self.executor.shutdown(wait=True)
        self.engine.dispose()
        logger.info("Unit of work provider shut down")
