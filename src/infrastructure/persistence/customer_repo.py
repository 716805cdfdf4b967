"""
infrastructure.persistence.customer_repo - SQLite customer repository.

Implements CustomerRepository port. The credits column is written here only
on insert (welcome grant); every later balance change goes through
SQLiteCreditLedger.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional

from domain.entities import Customer
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_LIST_FIELDS = {
    "dietary_preferences", "allergies",
    "favorite_ingredients", "disliked_ingredients",
}
_PROFILE_FIELDS = _LIST_FIELDS | {
    "first_name", "last_name", "phone_number", "skill_level",
}


class SQLiteCustomerRepository:
    """Async SQLite implementation of CustomerRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM customers
                   WHERE id = ? AND (deleted_at = '' OR deleted_at IS NULL)""",
                (customer_id,),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def get_by_email(self, email: str) -> Optional[Customer]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM customers
                   WHERE email = ? AND (deleted_at = '' OR deleted_at IS NULL)""",
                (email.strip().lower(),),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def save(self, customer: Customer) -> int:
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """INSERT INTO customers
                   (email, password_hash, first_name, last_name, google_id,
                    phone_number, skill_level, dietary_preferences, allergies,
                    favorite_ingredients, disliked_ingredients, credits,
                    account_status, last_login, created_at, updated_at, deleted_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (customer.email.strip().lower(), customer.password_hash,
                 customer.first_name, customer.last_name, customer.google_id,
                 customer.phone_number, customer.skill_level or "beginner",
                 json.dumps(customer.dietary_preferences),
                 json.dumps(customer.allergies),
                 json.dumps(customer.favorite_ingredients),
                 json.dumps(customer.disliked_ingredients),
                 max(0, customer.credits), customer.account_status or "active",
                 now, now, now, ""),
            )
            return cursor.lastrowid

    async def update_profile(self, customer_id: int, fields: dict) -> None:
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Invalid profile field(s): {sorted(unknown)}")
        if not fields:
            return

        assignments = ", ".join(f"{name} = ?" for name in fields)
        values = [
            json.dumps(v) if name in _LIST_FIELDS else v
            for name, v in fields.items()
        ]
        async with self._conn.acquire() as conn:
            await conn.execute(
                f"UPDATE customers SET {assignments}, updated_at = ? WHERE id = ?",
                (*values, datetime.now().isoformat(), customer_id),
            )

    async def touch_login(self, customer_id: int) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                "UPDATE customers SET last_login = ? WHERE id = ?",
                (datetime.now().isoformat(), customer_id),
            )

    async def soft_delete(self, customer_id: int) -> None:
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            await conn.execute(
                """UPDATE customers
                   SET deleted_at = ?, account_status = 'inactive', updated_at = ?
                   WHERE id = ?""",
                (now, now, customer_id),
            )

    @staticmethod
    def _row_to_entity(row) -> Customer:
        return Customer(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"] or "",
            first_name=row["first_name"] or "",
            last_name=row["last_name"] or "",
            google_id=row["google_id"] or "",
            phone_number=row["phone_number"] or "",
            skill_level=row["skill_level"] or "beginner",
            dietary_preferences=json.loads(row["dietary_preferences"] or "[]"),
            allergies=json.loads(row["allergies"] or "[]"),
            favorite_ingredients=json.loads(row["favorite_ingredients"] or "[]"),
            disliked_ingredients=json.loads(row["disliked_ingredients"] or "[]"),
            credits=row["credits"] or 0,
            account_status=row["account_status"] or "active",
            last_login=row["last_login"] or "",
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
            deleted_at=row["deleted_at"] or "",
        )
