"""
infrastructure.persistence.transaction_repo - SQLite payment transaction repository.

Status transitions are conditional UPDATEs on status = 'PENDING', which makes
them one-way and idempotent: replaying a webhook finds nothing to update.
complete_and_credit moves a transaction to COMPLETED and adds its credits to
the customer in a single SQLite transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from domain.entities import PaymentTransaction, TransactionStatus
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


class SQLiteTransactionRepository:
    """Async SQLite implementation of TransactionRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def create(self, transaction: PaymentTransaction) -> int:
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """INSERT INTO payment_transactions
                   (transaction_id, customer_id, credits, amount, currency,
                    gateway, status, gateway_reference, review_note,
                    created_at, updated_at, completed_at)
                   VALUES (?, ?, ?, ?, ?, ?, 'PENDING', ?, '', ?, ?, '')""",
                (transaction.transaction_id, transaction.customer_id,
                 transaction.credits, transaction.amount, transaction.currency,
                 transaction.gateway, transaction.gateway_reference, now, now),
            )
            return cursor.lastrowid

    async def get(self, transaction_id: str) -> Optional[PaymentTransaction]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                "SELECT * FROM payment_transactions WHERE transaction_id = ?",
                (transaction_id,),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def list(
        self,
        status: Optional[TransactionStatus] = None,
        anomalies_only: bool = False,
        limit: int = 50,
    ) -> list[PaymentTransaction]:
        clauses, params = [], []
        if status is not None:
            clauses.append("status = ?")
            params.append(TransactionStatus(status).value)
        if anomalies_only:
            clauses.append("review_note IS NOT NULL AND review_note != ''")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"""SELECT * FROM payment_transactions {where}
                    ORDER BY created_at DESC, id DESC LIMIT ?""",
                (*params, limit),
            )
            return [self._row_to_entity(r) for r in rows]

    async def set_gateway_reference(self, transaction_id: str, reference: str) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                """UPDATE payment_transactions
                   SET gateway_reference = ?, updated_at = ?
                   WHERE transaction_id = ?""",
                (reference, datetime.now().isoformat(), transaction_id),
            )

    async def complete_and_credit(
        self, transaction_id: str, gateway_reference: str = "",
    ) -> Optional[int]:
        """PENDING -> COMPLETED and credit the customer, atomically.

        Returns the customer's new balance, or None when the transaction was
        not PENDING (already settled, or unknown). Only one caller can ever
        see a non-None result for a given transaction.
        """
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """UPDATE payment_transactions
                   SET status = 'COMPLETED', completed_at = ?, updated_at = ?,
                       gateway_reference = CASE WHEN ? != '' THEN ?
                                                ELSE gateway_reference END
                   WHERE transaction_id = ? AND status = 'PENDING'""",
                (now, now, gateway_reference, gateway_reference, transaction_id),
            )
            if cursor.rowcount != 1:
                return None

            rows = await conn.execute_fetchall(
                "SELECT customer_id, credits FROM payment_transactions WHERE transaction_id = ?",
                (transaction_id,),
            )
            customer_id, credits = rows[0]["customer_id"], rows[0]["credits"]
            await conn.execute(
                "UPDATE customers SET credits = credits + ?, updated_at = ? WHERE id = ?",
                (credits, now, customer_id),
            )
            balance_rows = await conn.execute_fetchall(
                "SELECT credits FROM customers WHERE id = ?", (customer_id,),
            )

        balance = balance_rows[0][0] if balance_rows else 0
        logger.info(
            "Transaction %s completed: +%d credits to customer %d (balance %d)",
            transaction_id, credits, customer_id, balance,
        )
        return balance

    async def mark_failed(self, transaction_id: str) -> bool:
        """PENDING -> FAILED. Returns False if the transaction was not PENDING."""
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """UPDATE payment_transactions
                   SET status = 'FAILED', updated_at = ?
                   WHERE transaction_id = ? AND status = 'PENDING'""",
                (now, transaction_id),
            )
            return cursor.rowcount == 1

    async def flag_for_review(self, transaction_id: str, note: str) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                """UPDATE payment_transactions
                   SET review_note = ?, updated_at = ?
                   WHERE transaction_id = ?""",
                (note, datetime.now().isoformat(), transaction_id),
            )

    @staticmethod
    def _row_to_entity(row) -> PaymentTransaction:
        return PaymentTransaction(
            id=row["id"],
            transaction_id=row["transaction_id"],
            customer_id=row["customer_id"],
            credits=row["credits"],
            amount=row["amount"],
            currency=row["currency"] or "",
            gateway=row["gateway"],
            status=TransactionStatus(row["status"]),
            gateway_reference=row["gateway_reference"] or "",
            review_note=row["review_note"] or "",
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
            completed_at=row["completed_at"] or "",
        )
