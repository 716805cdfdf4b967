"""
infrastructure.payments.stripe_gateway - Stripe Checkout adapter.

Implements PaymentGatewayPort with hosted Checkout Sessions. The Stripe SDK
is synchronous, so API calls run via run_in_executor.

Webhook events handled:
    checkout.session.completed               -> SUCCESS (paid) / PENDING
    checkout.session.async_payment_succeeded -> SUCCESS
    checkout.session.async_payment_failed    -> FAILED
    checkout.session.expired                 -> FAILED
Anything else verifies fine but carries no transaction id.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import stripe

from domain.exceptions import (
    ProviderPermanentError,
    ProviderTransientError,
    SignatureInvalidError,
)
from domain.entities import PaymentTransaction
from domain.models import (
    PaymentRequest,
    PaymentSession,
    PricingTable,
    VerifiedWebhook,
    WebhookOutcome,
)

logger = logging.getLogger(__name__)

# Seconds a signed timestamp stays valid (Stripe's default)
SIGNATURE_TOLERANCE = 300

_EVENT_OUTCOMES = {
    "checkout.session.async_payment_succeeded": WebhookOutcome.SUCCESS,
    "checkout.session.async_payment_failed": WebhookOutcome.FAILED,
    "checkout.session.expired": WebhookOutcome.FAILED,
}


class StripeGateway:
    """Card payments through Stripe Checkout.

    Args:
        secret_key: Stripe secret API key.
        webhook_secret: Endpoint signing secret (whsec_...).
        pricing: Pack -> unit amount table in the Stripe currency.
        return_url: Front-end page the shopper lands on afterwards.
        checkout_api: Object exposing create()/retrieve() like
            stripe.checkout.Session. Tests pass a fake here.
    """

    name = "stripe"

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        pricing: PricingTable,
        return_url: str,
        checkout_api: Any = None,
    ):
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self.pricing = pricing
        self._return_url = return_url.rstrip("/")
        self._checkout = checkout_api or stripe.checkout.Session

    async def create_payment(self, request: PaymentRequest) -> PaymentSession:
        params = {
            "mode": "payment",
            "line_items": [{
                "price_data": {
                    "currency": request.currency,
                    "product_data": {"name": f"{request.credits} recipe credits"},
                    "unit_amount": request.amount,
                },
                "quantity": 1,
            }],
            "client_reference_id": request.transaction_id,
            "success_url": (
                f"{self._return_url}?status=success&gateway=stripe"
                f"&transaction_id={request.transaction_id}"
            ),
            "cancel_url": (
                f"{self._return_url}?status=cancel&gateway=stripe"
                f"&transaction_id={request.transaction_id}"
            ),
            "metadata": {
                "customer_id": str(request.customer_id),
                "credits": str(request.credits),
                "transaction_id": request.transaction_id,
            },
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email

        session = await self._run(self._create_session, params)
        logger.info(
            "Created Stripe checkout session %s for transaction %s",
            session.id, request.transaction_id,
        )
        return PaymentSession(
            redirect_url=session.url,
            transaction_id=request.transaction_id,
            gateway_reference=session.id,
        )

    def verify_webhook(
        self, raw_body: bytes, signature_header: str | None,
    ) -> VerifiedWebhook:
        """Check the Stripe-Signature header, then map the event.

        Raises:
            SignatureInvalidError: header missing, malformed or not matching.
        """
        if not signature_header:
            raise SignatureInvalidError("Missing Stripe-Signature header.")
        try:
            payload = raw_body.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                payload, signature_header, self._webhook_secret,
                tolerance=SIGNATURE_TOLERANCE,
            )
            event = json.loads(payload)
        except stripe.SignatureVerificationError as e:
            logger.warning("Stripe webhook signature rejected: %s", e)
            raise SignatureInvalidError(str(e)) from e
        except (UnicodeDecodeError, ValueError) as e:
            logger.warning("Stripe webhook payload unreadable: %s", e)
            raise SignatureInvalidError("Malformed webhook payload.") from e

        event_type = event.get("type", "")
        session = (event.get("data") or {}).get("object") or {}
        metadata = session.get("metadata") or {}
        transaction_id = (
            metadata.get("transaction_id") or session.get("client_reference_id")
        )

        if event_type == "checkout.session.completed":
            paid = session.get("payment_status") in ("paid", "no_payment_required")
            outcome = WebhookOutcome.SUCCESS if paid else WebhookOutcome.PENDING
        elif event_type in _EVENT_OUTCOMES:
            outcome = _EVENT_OUTCOMES[event_type]
        else:
            return VerifiedWebhook(
                transaction_id=None,
                outcome=WebhookOutcome.PENDING,
                event_type=event_type,
            )

        return VerifiedWebhook(
            transaction_id=transaction_id,
            outcome=outcome,
            amount=session.get("amount_total"),
            gateway_reference=session.get("id", ""),
            event_type=event_type,
        )

    async def fetch_status(self, transaction: PaymentTransaction) -> VerifiedWebhook:
        """Retrieve the Checkout Session behind *transaction*.

        amount_total is passed on for comparison with the stored price.
        """
        if not transaction.gateway_reference:
            return VerifiedWebhook(
                transaction_id=transaction.transaction_id,
                outcome=WebhookOutcome.PENDING,
            )
        session = await self._run(self._retrieve_session, transaction.gateway_reference)
        if session.payment_status in ("paid", "no_payment_required"):
            outcome = WebhookOutcome.SUCCESS
        elif session.status == "expired":
            outcome = WebhookOutcome.FAILED
        else:
            outcome = WebhookOutcome.PENDING
        return VerifiedWebhook(
            transaction_id=transaction.transaction_id,
            outcome=outcome,
            amount=getattr(session, "amount_total", None),
            gateway_reference=session.id,
            event_type=f"checkout.session.{session.status}",
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _create_session(self, params: dict):
        return self._checkout.create(api_key=self._secret_key, **params)

    def _retrieve_session(self, session_id: str):
        return self._checkout.retrieve(session_id, api_key=self._secret_key)

    async def _run(self, fn, *args):
        """Run a blocking SDK call in the thread pool, normalizing its errors."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, fn, *args)
        except (stripe.RateLimitError, stripe.APIConnectionError) as e:
            raise ProviderTransientError(
                f"Stripe unavailable: {e}", status_code=e.http_status,
            ) from e
        except stripe.StripeError as e:
            status = e.http_status
            if status is not None and status >= 500:
                raise ProviderTransientError(
                    f"Stripe error: {e}", status_code=status,
                ) from e
            raise ProviderPermanentError(
                f"Stripe rejected the request: {e}", status_code=status,
            ) from e
