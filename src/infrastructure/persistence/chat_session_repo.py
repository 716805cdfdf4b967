"""
infrastructure.persistence.chat_session_repo - SQLite chat session repository.

Stores session metadata and the append-only message log. Appending a message
and recomputing the session's derived fields happen in one transaction, so
message_count always equals the number of stored messages.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional

from domain.entities import ChatSession, SessionMessage, Sender, DEFAULT_SESSION_TITLE
from domain.exceptions import SessionNotFoundError
from domain.vocabulary import derive_terms
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_ACTIVE = "(s.deleted_at = '' OR s.deleted_at IS NULL)"

# Session columns plus a preview of the newest message
_SELECT_SESSION = f"""
    SELECT s.*,
           (SELECT substr(m.text, 1, 100) FROM session_messages m
            WHERE m.session_id = s.session_id
            ORDER BY m.id DESC LIMIT 1) AS preview
    FROM chat_sessions s
"""


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteChatSessionRepository:
    """Async SQLite implementation of ChatSessionRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def create(self, customer_id: int, session_id: str) -> ChatSession:
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """INSERT INTO chat_sessions
                   (customer_id, session_id, title, title_renamed, keywords,
                    food_names, message_count, created_at, last_message_at,
                    updated_at, deleted_at)
                   VALUES (?, ?, ?, 0, '[]', '[]', 0, ?, ?, ?, '')""",
                (customer_id, session_id, DEFAULT_SESSION_TITLE, now, now, now),
            )
            row_id = cursor.lastrowid
        return ChatSession(
            id=row_id,
            customer_id=customer_id,
            session_id=session_id,
            created_at=now,
            last_message_at=now,
            updated_at=now,
        )

    async def get(self, session_id: str) -> Optional[ChatSession]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                _SELECT_SESSION + f" WHERE s.session_id = ? AND {_ACTIVE}",
                (session_id,),
            )
            return self._row_to_session(rows[0]) if rows else None

    async def list_by_customer(
        self, customer_id: int, limit: int = 50, offset: int = 0,
    ) -> list[ChatSession]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                _SELECT_SESSION + f"""
                   WHERE s.customer_id = ? AND {_ACTIVE}
                   ORDER BY s.last_message_at DESC, s.id DESC
                   LIMIT ? OFFSET ?""",
                (customer_id, limit, offset),
            )
            return [self._row_to_session(r) for r in rows]

    async def search(self, customer_id: int, term: str) -> list[ChatSession]:
        """Case-insensitive substring match on title, keywords and food names."""
        pattern = f"%{_escape_like(term.strip())}%"
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                _SELECT_SESSION + f"""
                   WHERE s.customer_id = ? AND {_ACTIVE}
                     AND (s.title LIKE ? ESCAPE '\\'
                          OR s.keywords LIKE ? ESCAPE '\\'
                          OR s.food_names LIKE ? ESCAPE '\\')
                   ORDER BY s.last_message_at DESC, s.id DESC""",
                (customer_id, pattern, pattern, pattern),
            )
            return [self._row_to_session(r) for r in rows]

    async def append_message(self, message: SessionMessage) -> SessionMessage:
        """Append *message* and refresh the session's derived fields.

        Keywords, food names and title are only recomputed for user messages.
        last_message_at never moves backwards.
        """
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            # Write first: takes the lock before the derived fields are read
            cursor = await conn.execute(
                """UPDATE chat_sessions SET updated_at = ?
                   WHERE session_id = ? AND (deleted_at = '' OR deleted_at IS NULL)""",
                (now, message.session_id),
            )
            if cursor.rowcount != 1:
                raise SessionNotFoundError(f"Chat session {message.session_id} not found.")
            rows = await conn.execute_fetchall(
                "SELECT * FROM chat_sessions WHERE session_id = ?",
                (message.session_id,),
            )
            session = rows[0]

            cursor = await conn.execute(
                """INSERT INTO session_messages
                   (session_id, text, sender, timestamp, recipe_generated,
                    recipe_id, is_fallback)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (message.session_id, message.text, message.sender.value, now,
                 int(message.recipe_generated), message.recipe_id,
                 int(message.is_fallback)),
            )
            message_id = cursor.lastrowid

            keywords = json.loads(session["keywords"] or "[]")
            food_names = json.loads(session["food_names"] or "[]")
            title = session["title"] or DEFAULT_SESSION_TITLE
            if message.sender is Sender.USER:
                derived = derive_terms(
                    message.text, keywords, food_names, title,
                    bool(session["title_renamed"]),
                )
                keywords, food_names, title = (
                    derived.keywords, derived.food_names, derived.title,
                )

            await conn.execute(
                """UPDATE chat_sessions
                   SET keywords = ?, food_names = ?, title = ?,
                       message_count = (SELECT COUNT(*) FROM session_messages
                                        WHERE session_id = ?),
                       last_message_at = MAX(COALESCE(last_message_at, ''), ?),
                       updated_at = ?
                   WHERE session_id = ?""",
                (json.dumps(keywords), json.dumps(food_names), title,
                 message.session_id, now, now, message.session_id),
            )

        return SessionMessage(
            id=message_id,
            session_id=message.session_id,
            text=message.text,
            sender=message.sender,
            timestamp=now,
            recipe_generated=message.recipe_generated,
            recipe_id=message.recipe_id,
            is_fallback=message.is_fallback,
        )

    async def get_messages(
        self, session_id: str, limit: int = 100, offset: int = 0,
    ) -> list[SessionMessage]:
        """Messages in arrival order (oldest first)."""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM session_messages
                   WHERE session_id = ?
                   ORDER BY timestamp ASC, id ASC
                   LIMIT ? OFFSET ?""",
                (session_id, limit, offset),
            )
            return [self._row_to_message(r) for r in rows]

    async def recent_messages(
        self, session_id: str, limit: int = 20,
    ) -> list[SessionMessage]:
        """The newest *limit* messages, returned oldest first."""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM (
                       SELECT * FROM session_messages
                       WHERE session_id = ?
                       ORDER BY timestamp DESC, id DESC
                       LIMIT ?
                   ) ORDER BY timestamp ASC, id ASC""",
                (session_id, limit),
            )
            return [self._row_to_message(r) for r in rows]

    async def rename(self, session_id: str, title: str) -> None:
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """UPDATE chat_sessions
                    SET title = ?, title_renamed = 1, updated_at = ?
                    WHERE session_id = ? AND (deleted_at = '' OR deleted_at IS NULL)""",
                (title, datetime.now().isoformat(), session_id),
            )
            if cursor.rowcount != 1:
                raise SessionNotFoundError(f"Chat session {session_id} not found.")

    async def soft_delete(self, session_id: str) -> None:
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            await conn.execute(
                "UPDATE chat_sessions SET deleted_at = ?, updated_at = ? WHERE session_id = ?",
                (now, now, session_id),
            )

    @staticmethod
    def _row_to_session(row) -> ChatSession:
        return ChatSession(
            id=row["id"],
            customer_id=row["customer_id"],
            session_id=row["session_id"],
            title=row["title"] or DEFAULT_SESSION_TITLE,
            title_renamed=bool(row["title_renamed"]),
            keywords=json.loads(row["keywords"] or "[]"),
            food_names=json.loads(row["food_names"] or "[]"),
            message_count=row["message_count"] or 0,
            preview=row["preview"] or "",
            created_at=row["created_at"] or "",
            last_message_at=row["last_message_at"] or "",
            updated_at=row["updated_at"] or "",
            deleted_at=row["deleted_at"] or "",
        )

    @staticmethod
    def _row_to_message(row) -> SessionMessage:
        return SessionMessage(
            id=row["id"],
            session_id=row["session_id"],
            text=row["text"],
            sender=Sender(row["sender"]),
            timestamp=row["timestamp"] or "",
            recipe_generated=bool(row["recipe_generated"]),
            recipe_id=row["recipe_id"],
            is_fallback=bool(row["is_fallback"]),
        )
