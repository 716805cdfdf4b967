"""
infrastructure.persistence.connection - Async SQLite connection manager.

Wraps aiosqlite with a context manager: one connection (and one
transaction) per operation. Every multi-statement write that must be
atomic runs inside a single acquire() block.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from domain.exceptions import RepositoryError

logger = logging.getLogger(__name__)


class AsyncSQLiteConnection:
    """Async SQLite connection provider with auto-commit/rollback."""

    def __init__(self, db_path: str, busy_timeout: float = 30.0):
        self._db_path = db_path
        self._busy_timeout = busy_timeout

    @property
    def db_path(self) -> str:
        return self._db_path

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an async SQLite connection with FK support.

        Commits on success, rolls back on exception. sqlite3 errors are
        re-raised as RepositoryError; domain errors pass through untouched.
        """
        async with aiosqlite.connect(self._db_path, timeout=self._busy_timeout) as conn:
            await conn.execute("PRAGMA foreign_keys = ON")
            conn.row_factory = aiosqlite.Row
            try:
                yield conn
                await conn.commit()
            except aiosqlite.Error as exc:
                await conn.rollback()
                logger.exception("Database operation failed, transaction rolled back.")
                raise RepositoryError(str(exc)) from exc
            except Exception:
                await conn.rollback()
                raise
