"""
Stripe adapter: checkout session parameters, Stripe-Signature checks,
event mapping and SDK error normalization, with a fake Checkout API.
"""
import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from domain.entities import PaymentTransaction
from domain.exceptions import ProviderPermanentError, ProviderTransientError, SignatureInvalidError
from domain.models import PaymentRequest, WebhookOutcome
from infrastructure.payments.stripe_gateway import StripeGateway

from conftest import STRIPE_PRICES

WEBHOOK_SECRET = "whsec_test_secret"


class FakeCheckoutSessions:
    """Stands in for stripe.checkout.Session."""

    def __init__(self, error=None, payment_status="unpaid", status="open", amount_total=None):
        self.created: list[dict] = []
        self.error = error
        self.payment_status = payment_status
        self.status = status
        self.amount_total = amount_total

    def create(self, **params):
        if self.error:
            raise self.error
        self.created.append(params)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/c/pay/cs_test_1")

    def retrieve(self, session_id, api_key=None):
        if self.error:
            raise self.error
        return SimpleNamespace(
            id=session_id, payment_status=self.payment_status,
            status=self.status, amount_total=self.amount_total,
        )


def _gateway(checkout_api=None):
    return StripeGateway(
        secret_key="sk_test_123",
        webhook_secret=WEBHOOK_SECRET,
        pricing=STRIPE_PRICES,
        return_url="https://app.example.com/buy-credits",
        checkout_api=checkout_api or FakeCheckoutSessions(),
    )


def signed_event(event_type="checkout.session.completed", txn="TXN_1_abc",
                 amount=1299, payment_status="paid", secret=WEBHOOK_SECRET):
    """Payload and Stripe-Signature header the way Stripe signs them."""
    payload = json.dumps({
        "id": "evt_1",
        "type": event_type,
        "data": {"object": {
            "id": "cs_test_1",
            "client_reference_id": txn,
            "amount_total": amount,
            "payment_status": payment_status,
            "metadata": {"transaction_id": txn, "credits": "60"},
        }},
    })
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256,
    ).hexdigest()
    return payload.encode(), f"t={timestamp},v1={signature}"


@pytest.mark.asyncio
async def test_create_payment_builds_checkout_session():
    api = FakeCheckoutSessions()
    result = await _gateway(api).create_payment(PaymentRequest(
        transaction_id="TXN_3_abc", customer_id=3, credits=60,
        amount=1299, currency="usd", customer_email="c@example.com",
    ))

    assert result.redirect_url == "https://checkout.stripe.test/c/pay/cs_test_1"
    assert result.gateway_reference == "cs_test_1"

    params = api.created[0]
    assert params["api_key"] == "sk_test_123"
    assert params["mode"] == "payment"
    assert params["line_items"][0]["price_data"]["unit_amount"] == 1299
    assert params["client_reference_id"] == "TXN_3_abc"
    assert params["metadata"]["transaction_id"] == "TXN_3_abc"
    assert params["customer_email"] == "c@example.com"
    assert params["success_url"].startswith("https://app.example.com/buy-credits?status=success")


@pytest.mark.asyncio
async def test_rate_limit_is_transient():
    api = FakeCheckoutSessions(error=stripe.RateLimitError("slow down", http_status=429))
    with pytest.raises(ProviderTransientError):
        await _gateway(api).create_payment(PaymentRequest(
            transaction_id="T", customer_id=1, credits=20, amount=499, currency="usd",
        ))


@pytest.mark.asyncio
async def test_invalid_request_is_permanent():
    api = FakeCheckoutSessions(
        error=stripe.InvalidRequestError("No such price", param="line_items", http_status=400),
    )
    with pytest.raises(ProviderPermanentError):
        await _gateway(api).create_payment(PaymentRequest(
            transaction_id="T", customer_id=1, credits=20, amount=499, currency="usd",
        ))


def test_completed_event_maps_to_success():
    body, header = signed_event()
    event = _gateway().verify_webhook(body, header)

    assert event.transaction_id == "TXN_1_abc"
    assert event.outcome is WebhookOutcome.SUCCESS
    assert event.amount == 1299
    assert event.gateway_reference == "cs_test_1"


def test_unpaid_completion_is_pending():
    body, header = signed_event(payment_status="unpaid")
    assert _gateway().verify_webhook(body, header).outcome is WebhookOutcome.PENDING


def test_expired_and_failed_events():
    gateway = _gateway()
    for event_type in ("checkout.session.expired", "checkout.session.async_payment_failed"):
        body, header = signed_event(event_type=event_type)
        assert gateway.verify_webhook(body, header).outcome is WebhookOutcome.FAILED


def test_unrelated_event_has_no_transaction():
    body, header = signed_event(event_type="customer.created")
    assert _gateway().verify_webhook(body, header).transaction_id is None


def test_bad_signature_is_rejected():
    body, header = signed_event(secret="whsec_someone_else")
    gateway = _gateway()
    with pytest.raises(SignatureInvalidError):
        gateway.verify_webhook(body, header)
    with pytest.raises(SignatureInvalidError):
        gateway.verify_webhook(body, None)


def test_tampered_payload_is_rejected():
    body, header = signed_event(amount=1299)
    tampered = body.replace(b"1299", b"1")
    with pytest.raises(SignatureInvalidError):
        _gateway().verify_webhook(tampered, header)


@pytest.mark.asyncio
async def test_fetch_status():
    txn = PaymentTransaction(transaction_id="TXN_1", gateway_reference="cs_test_1")

    async def outcome(api, transaction=txn):
        return (await _gateway(api).fetch_status(transaction)).outcome

    assert await outcome(FakeCheckoutSessions(payment_status="paid")) is WebhookOutcome.SUCCESS
    assert await outcome(FakeCheckoutSessions(status="expired")) is WebhookOutcome.FAILED
    assert await outcome(FakeCheckoutSessions()) is WebhookOutcome.PENDING
    assert await outcome(FakeCheckoutSessions(), PaymentTransaction(transaction_id="TXN_2")) is WebhookOutcome.PENDING


@pytest.mark.asyncio
async def test_fetch_status_reports_session_amount():
    api = FakeCheckoutSessions(payment_status="paid", status="complete", amount_total=1299)
    txn = PaymentTransaction(transaction_id="TXN_1", gateway_reference="cs_test_1")

    event = await _gateway(api).fetch_status(txn)

    assert event.transaction_id == "TXN_1"
    assert event.amount == 1299
    assert event.gateway_reference == "cs_test_1"
