"""
infrastructure.persistence.credit_ledger - Atomic credit balance primitives.

Implements CreditLedger port. Each operation is a single conditional UPDATE
followed by a read of the new balance inside the same transaction, so the
read sees exactly the value this write produced. Concurrent callers are
serialized by SQLite's write lock; no application-level lock exists.
"""

from __future__ import annotations

import logging
from datetime import datetime

from domain.exceptions import CustomerNotFoundError, InsufficientCreditsError
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_ACTIVE = "(deleted_at = '' OR deleted_at IS NULL)"


class SQLiteCreditLedger:
    """Async SQLite implementation of CreditLedger."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def debit_one(self, customer_id: int) -> int:
        """Decrement the balance iff it is > 0. Returns the new balance.

        Raises:
            InsufficientCreditsError: balance was 0 (nothing changed).
            CustomerNotFoundError: no such customer.
        """
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                f"""UPDATE customers
                    SET credits = credits - 1, updated_at = ?
                    WHERE id = ? AND credits > 0 AND {_ACTIVE}""",
                (datetime.now().isoformat(), customer_id),
            )
            debited = cursor.rowcount == 1
            rows = await conn.execute_fetchall(
                f"SELECT credits FROM customers WHERE id = ? AND {_ACTIVE}",
                (customer_id,),
            )

        if not rows:
            raise CustomerNotFoundError(f"Customer {customer_id} not found.")
        if not debited:
            raise InsufficientCreditsError(
                "Insufficient credits. Please purchase more to continue."
            )
        balance = rows[0][0]
        logger.debug("Debited 1 credit from customer %d (balance %d)", customer_id, balance)
        return balance

    async def credit(self, customer_id: int, amount: int) -> int:
        """Add *amount* credits. Not idempotent: every call adds."""
        if amount <= 0:
            raise ValueError("Credit amount must be positive.")
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                f"""UPDATE customers
                    SET credits = credits + ?, updated_at = ?
                    WHERE id = ? AND {_ACTIVE}""",
                (amount, datetime.now().isoformat(), customer_id),
            )
            if cursor.rowcount != 1:
                raise CustomerNotFoundError(f"Customer {customer_id} not found.")
            rows = await conn.execute_fetchall(
                "SELECT credits FROM customers WHERE id = ?", (customer_id,),
            )
        balance = rows[0][0]
        logger.info("Credited %d to customer %d (balance %d)", amount, customer_id, balance)
        return balance

    async def balance(self, customer_id: int) -> int:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"SELECT credits FROM customers WHERE id = ? AND {_ACTIVE}",
                (customer_id,),
            )
        if not rows:
            raise CustomerNotFoundError(f"Customer {customer_id} not found.")
        return rows[0][0]
