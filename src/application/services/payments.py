"""
application.services.payments - Credit pack purchases and webhook reconciliation.

Purchase flow:
    checkout  -> PENDING transaction stored, then the gateway is asked for a
                 hosted payment page. A gateway failure marks it FAILED.
    webhook   -> signature verified by the gateway adapter, then reconciled.
    status    -> while PENDING, the gateway is polled and the answer goes
                 through the same reconciliation as a webhook.

Reconciliation never raises for unknown or already-settled transactions:
those are acknowledged so the gateway stops retrying. Crediting and the
PENDING -> COMPLETED transition are one atomic repository call.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from domain.entities import PaymentTransaction, TransactionStatus
from domain.exceptions import (
    CustomerNotFoundError,
    DomainError,
    ProviderError,
    TransactionNotFoundError,
)
from domain.models import PaymentRequest, VerifiedWebhook, WebhookOutcome
from domain.ports import CustomerRepository, TransactionRepository
from application.context import RequestContext
from application.dto import CheckoutResult, GatewayConfig, ReconcileResult
from application.validation import validate_payment_request
from application.gateway_registry import GatewayRegistry

logger = logging.getLogger(__name__)

_REDIRECT_STATUS = {
    TransactionStatus.COMPLETED: "success",
    TransactionStatus.PENDING: "pending",
    TransactionStatus.FAILED: "failed",
}


def new_transaction_id(customer_id: int) -> str:
    return f"TXN_{customer_id}_{uuid4().hex[:12]}"


class PaymentService:
    """Creates payments and reconciles gateway notifications."""

    def __init__(
        self,
        customer_repo: CustomerRepository,
        transaction_repo: TransactionRepository,
        gateways: GatewayRegistry,
        base_url: str,
    ):
        self._customer_repo = customer_repo
        self._transaction_repo = transaction_repo
        self._gateways = gateways
        self._base_url = base_url.rstrip("/")

    def gateway_configs(self) -> list[GatewayConfig]:
        configs = []
        for name in self._gateways.configured():
            gateway = self._gateways.get(name)
            configs.append(GatewayConfig(
                name=name,
                currency=gateway.pricing.currency,
                prices=dict(gateway.pricing.prices),
            ))
        return configs

    async def create_checkout(
        self, ctx: RequestContext, gateway_name: str, raw: dict,
    ) -> CheckoutResult:
        """Validate the pack, store a PENDING transaction, open a payment page.

        Raises:
            GatewayNotConfiguredError / NotFoundError: gateway unavailable.
            ValidationError: unknown or unpriced credit pack.
            ProviderError: the gateway call failed (transaction is FAILED).
        """
        gateway = self._gateways.get(gateway_name)
        request = validate_payment_request(gateway.name, raw, gateway.pricing)

        customer = await self._customer_repo.get_by_id(ctx.customer_id)
        if customer is None:
            raise CustomerNotFoundError(f"Customer {ctx.customer_id} not found.")

        amount = gateway.pricing.price_for(request.credits)
        transaction = PaymentTransaction(
            transaction_id=new_transaction_id(ctx.customer_id),
            customer_id=ctx.customer_id,
            credits=request.credits,
            amount=amount,
            currency=gateway.pricing.currency,
            gateway=gateway.name,
        )
        await self._transaction_repo.create(transaction)

        try:
            session = await gateway.create_payment(PaymentRequest(
                transaction_id=transaction.transaction_id,
                customer_id=ctx.customer_id,
                credits=request.credits,
                amount=amount,
                currency=gateway.pricing.currency,
                customer_email=customer.email,
                customer_name=customer.full_name,
                customer_phone=customer.phone_number,
            ))
        except ProviderError as e:
            await self._transaction_repo.mark_failed(transaction.transaction_id)
            logger.error(
                "[%s] %s checkout failed for transaction %s: %s",
                ctx.request_id, gateway.name, transaction.transaction_id, e,
            )
            raise

        if session.gateway_reference:
            await self._transaction_repo.set_gateway_reference(
                transaction.transaction_id, session.gateway_reference,
            )
        logger.info(
            "[%s] Customer %d started %s purchase of %d credits (%s)",
            ctx.request_id, ctx.customer_id, gateway.name,
            request.credits, transaction.transaction_id,
        )
        return CheckoutResult(
            transaction_id=transaction.transaction_id,
            redirect_url=session.redirect_url,
            gateway=gateway.name,
            credits=request.credits,
            amount=amount,
            currency=gateway.pricing.currency,
        )

    async def handle_webhook(
        self, gateway_name: str, raw_body: bytes, signature: Optional[str],
    ) -> ReconcileResult:
        """Verify then reconcile. SignatureInvalidError leaves state untouched."""
        gateway = self._gateways.get(gateway_name)
        event = gateway.verify_webhook(raw_body, signature)
        return await self.reconcile(gateway.name, event)

    async def reconcile(self, gateway_name: str, event: VerifiedWebhook) -> ReconcileResult:
        txn_id = event.transaction_id
        if not txn_id:
            logger.info("Ignoring %s event %r without a transaction", gateway_name, event.event_type)
            return ReconcileResult(transaction_id=None, action="ignored")

        transaction = await self._transaction_repo.get(txn_id)
        if transaction is None:
            logger.warning("%s notification for unknown transaction %s", gateway_name, txn_id)
            return ReconcileResult(transaction_id=txn_id, action="ignored")
        if transaction.gateway != gateway_name:
            logger.error(
                "Transaction %s belongs to %s but %s reported it",
                txn_id, transaction.gateway, gateway_name,
            )
            return ReconcileResult(transaction_id=txn_id, action="ignored")
        if transaction.status.is_terminal:
            logger.info("Transaction %s already %s, nothing to do", txn_id, transaction.status.value)
            return ReconcileResult(transaction_id=txn_id, action="ignored")

        if event.outcome is WebhookOutcome.SUCCESS:
            return await self._complete(transaction, event)
        if event.outcome is WebhookOutcome.FAILED:
            changed = await self._transaction_repo.mark_failed(txn_id)
            if changed:
                logger.info("Transaction %s marked FAILED", txn_id)
            return ReconcileResult(transaction_id=txn_id, action="failed" if changed else "ignored")
        return ReconcileResult(transaction_id=txn_id, action="pending")

    async def _complete(
        self, transaction: PaymentTransaction, event: VerifiedWebhook,
    ) -> ReconcileResult:
        txn_id = transaction.transaction_id
        if event.amount is not None and event.amount != transaction.amount:
            note = (
                f"Amount mismatch: expected {transaction.amount} "
                f"{transaction.currency}, gateway reported {event.amount}"
            )
            await self._transaction_repo.flag_for_review(txn_id, note)
            logger.error("Reconciliation anomaly on transaction %s: %s", txn_id, note)
            return ReconcileResult(transaction_id=txn_id, action="flagged")

        balance = await self._transaction_repo.complete_and_credit(
            txn_id, event.gateway_reference,
        )
        if balance is None:
            return ReconcileResult(transaction_id=txn_id, action="ignored")
        return ReconcileResult(transaction_id=txn_id, action="credited", credits_balance=balance)

    async def check_status(
        self, ctx: RequestContext, transaction_id: str,
    ) -> PaymentTransaction:
        transaction = await self._transaction_repo.get(transaction_id)
        if transaction is None or transaction.customer_id != ctx.customer_id:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found.")
        return await self.refresh(transaction)

    async def refresh(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """Ask the gateway about a PENDING transaction and reconcile the answer.

        The answer goes through the same checks as a webhook, amount included.
        Gateway errors leave the stored status as it is. Transactions held
        for review are never settled automatically.
        """
        if transaction.status is not TransactionStatus.PENDING or transaction.review_note:
            return transaction
        try:
            gateway = self._gateways.get(transaction.gateway)
            event = await gateway.fetch_status(transaction)
        except (ProviderError, DomainError) as e:
            logger.warning(
                "Status check for transaction %s failed: %s", transaction.transaction_id, e,
            )
            return transaction

        await self.reconcile(transaction.gateway, event)
        return await self._transaction_repo.get(transaction.transaction_id) or transaction

    async def refresh_by_id(self, transaction_id: str) -> PaymentTransaction:
        transaction = await self._transaction_repo.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found.")
        return await self.refresh(transaction)

    async def callback_redirect(self, gateway_name: str, transaction_id: Optional[str]) -> str:
        """Front-end URL to send the shopper to after the hosted page."""
        status = "error"
        if transaction_id:
            transaction = await self._transaction_repo.get(transaction_id)
            if transaction is not None and transaction.gateway == gateway_name:
                transaction = await self.refresh(transaction)
                status = _REDIRECT_STATUS[transaction.status]
        return f"{self._base_url}/buy-credits?status={status}&gateway={gateway_name}"

    async def list_transactions(
        self,
        status: Optional[TransactionStatus] = None,
        anomalies_only: bool = False,
        limit: int = 50,
    ) -> list[PaymentTransaction]:
        return await self._transaction_repo.list(
            status=status, anomalies_only=anomalies_only, limit=limit,
        )
