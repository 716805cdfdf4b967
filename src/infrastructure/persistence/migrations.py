"""
infrastructure.persistence.migrations - Database schema creation.

Called once at startup by the factory (API) or the admin CLI.
"""

from __future__ import annotations

import logging

from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_TABLES = [
    """CREATE TABLE IF NOT EXISTS customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT,
        first_name TEXT,
        last_name TEXT,
        google_id TEXT,
        phone_number TEXT,
        skill_level TEXT DEFAULT 'beginner',
        dietary_preferences TEXT DEFAULT '[]',
        allergies TEXT DEFAULT '[]',
        favorite_ingredients TEXT DEFAULT '[]',
        disliked_ingredients TEXT DEFAULT '[]',
        credits INTEGER NOT NULL DEFAULT 10 CHECK (credits >= 0),
        account_status TEXT DEFAULT 'active',
        last_login TEXT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS chat_sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        customer_id INTEGER NOT NULL,
        session_id TEXT NOT NULL UNIQUE,
        title TEXT,
        title_renamed INTEGER DEFAULT 0,
        keywords TEXT DEFAULT '[]',
        food_names TEXT DEFAULT '[]',
        message_count INTEGER DEFAULT 0,
        created_at TEXT,
        last_message_at TEXT,
        updated_at TEXT,
        deleted_at TEXT,
        FOREIGN KEY (customer_id) REFERENCES customers(id)
    )""",
    """CREATE TABLE IF NOT EXISTS session_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        text TEXT NOT NULL,
        sender TEXT NOT NULL CHECK (sender IN ('user', 'ai')),
        timestamp TEXT,
        recipe_generated INTEGER DEFAULT 0,
        recipe_id TEXT,
        is_fallback INTEGER DEFAULT 0,
        FOREIGN KEY (session_id) REFERENCES chat_sessions(session_id)
    )""",
    """CREATE TABLE IF NOT EXISTS payment_transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        transaction_id TEXT NOT NULL UNIQUE,
        customer_id INTEGER NOT NULL,
        credits INTEGER NOT NULL,
        amount INTEGER NOT NULL,
        currency TEXT,
        gateway TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'PENDING'
            CHECK (status IN ('PENDING', 'COMPLETED', 'FAILED')),
        gateway_reference TEXT,
        review_note TEXT,
        created_at TEXT,
        updated_at TEXT,
        completed_at TEXT,
        FOREIGN KEY (customer_id) REFERENCES customers(id)
    )""",
    "CREATE INDEX IF NOT EXISTS idx_sessions_customer_recent "
    "ON chat_sessions (customer_id, last_message_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_messages_session "
    "ON session_messages (session_id, id)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_customer "
    "ON payment_transactions (customer_id, created_at DESC)",
]


async def run_migrations(connection: AsyncSQLiteConnection) -> None:
    """Create all tables if they don't exist.

    Safe to call multiple times (uses IF NOT EXISTS).
    """
    async with connection.acquire() as conn:
        for ddl in _TABLES:
            await conn.execute(ddl)
    logger.info("All tables created (or already exist).")
