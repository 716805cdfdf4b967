"""
Payment service: checkout bookkeeping and webhook reconciliation.

Webhooks are signed exactly as the gateways sign them, so these run the
real verification code end to end.
"""
import asyncio

import pytest
import pytest_asyncio

from domain.entities import TransactionStatus
from domain.exceptions import (
    GatewayNotConfiguredError,
    NotFoundError,
    ProviderTransientError,
    SignatureInvalidError,
    TransactionNotFoundError,
    ValidationError,
)
from factory import ServiceFactory
from infrastructure.payments.phonepe_gateway import PhonePeGateway
from infrastructure.payments.stripe_gateway import StripeGateway

from conftest import PHONEPE_PRICES, STRIPE_PRICES, FakeHTTPSession, FakeResponse, make_customer
from test_phonepe_gateway import SALT, signed_notification
from test_stripe_gateway import WEBHOOK_SECRET, FakeCheckoutSessions, signed_event

PAY_OK = FakeResponse(200, {
    "success": True,
    "code": "PAYMENT_INITIATED",
    "data": {"instrumentResponse": {"redirectInfo": {"url": "https://mercury.test/pay/1"}}},
})


@pytest.fixture
def phonepe_http():
    return FakeHTTPSession()


@pytest.fixture
def stripe_api():
    return FakeCheckoutSessions()


@pytest_asyncio.fixture
async def pay_factory(settings, completion_client, phonepe_http, stripe_api):
    gateways = [
        PhonePeGateway(
            merchant_id="MERCHANTUAT", salt_key=SALT, salt_index="1",
            api_base="https://phonepe.test", pricing=PHONEPE_PRICES,
            callback_base=settings.public_api_url, session=phonepe_http,
        ),
        StripeGateway(
            secret_key="sk_test_123", webhook_secret=WEBHOOK_SECRET,
            pricing=STRIPE_PRICES, return_url=f"{settings.base_url}/buy-credits",
            checkout_api=stripe_api,
        ),
    ]
    f = ServiceFactory(settings, completion_client=completion_client, gateways=gateways)
    await f.initialize()
    return f


async def _phonepe_checkout(factory, phonepe_http, ctx, credits=60):
    phonepe_http.responses.append(PAY_OK)
    return await factory.create_payment_service().create_checkout(
        ctx, "phonepe", {"credits": credits},
    )


@pytest.mark.asyncio
async def test_checkout_stores_pending_transaction(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)

    result = await _phonepe_checkout(pay_factory, phonepe_http, ctx)

    assert result.redirect_url == "https://mercury.test/pay/1"
    assert result.amount == 24900
    assert result.currency == "inr"
    assert result.transaction_id.startswith(f"TXN_{ctx.customer_id}_")

    txn = await pay_factory.create_payment_service().check_status(ctx, result.transaction_id)
    # status poll answered with an empty body: still pending
    assert txn.status is TransactionStatus.PENDING
    assert txn.credits == 60


@pytest.mark.asyncio
async def test_stripe_checkout_records_session_reference(pay_factory, stripe_api):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    service = pay_factory.create_payment_service()

    result = await service.create_checkout(ctx, "stripe", {"credits": "20"})

    assert result.amount == 499
    transactions = await service.list_transactions()
    assert transactions[0].gateway_reference == "cs_test_1"


@pytest.mark.asyncio
async def test_gateway_failure_marks_transaction_failed(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    phonepe_http.responses.append(FakeResponse(503, None))
    service = pay_factory.create_payment_service()

    with pytest.raises(ProviderTransientError):
        await service.create_checkout(ctx, "phonepe", {"credits": 20})

    transactions = await service.list_transactions()
    assert len(transactions) == 1
    assert transactions[0].status is TransactionStatus.FAILED


@pytest.mark.asyncio
async def test_invalid_pack_is_rejected_before_anything_is_stored(pay_factory):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    service = pay_factory.create_payment_service()

    with pytest.raises(ValidationError):
        await service.create_checkout(ctx, "phonepe", {"credits": 25})
    assert await service.list_transactions() == []


@pytest.mark.asyncio
async def test_unconfigured_and_unknown_gateways(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    service = factory.create_payment_service()

    with pytest.raises(GatewayNotConfiguredError):
        await service.create_checkout(ctx, "stripe", {"credits": 20})
    with pytest.raises(NotFoundError):
        await service.create_checkout(ctx, "paypal", {"credits": 20})
    assert service.gateway_configs() == []


@pytest.mark.asyncio
async def test_replayed_webhook_credits_once(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx)
    body, header = signed_notification(txn=checkout.transaction_id, amount=24900)
    service = pay_factory.create_payment_service()

    first = await service.handle_webhook("phonepe", body, header)
    second = await service.handle_webhook("phonepe", body, header)

    assert first.action == "credited"
    assert first.credits_balance == 65
    assert second.action == "ignored"
    assert await pay_factory.create_credit_ledger().balance(ctx.customer_id) == 65


@pytest.mark.asyncio
async def test_concurrent_webhooks_credit_once(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 0)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx)
    body, header = signed_notification(txn=checkout.transaction_id, amount=24900)
    service = pay_factory.create_payment_service()

    results = await asyncio.gather(
        *(service.handle_webhook("phonepe", body, header) for _ in range(5)),
    )

    assert sorted(r.action for r in results) == ["credited"] + ["ignored"] * 4
    assert await pay_factory.create_credit_ledger().balance(ctx.customer_id) == 60


@pytest.mark.asyncio
async def test_stripe_webhook_completes_transaction(pay_factory):
    ctx = await make_customer(pay_factory, "a@example.com", 1)
    service = pay_factory.create_payment_service()
    checkout = await service.create_checkout(ctx, "stripe", {"credits": 60})
    body, header = signed_event(txn=checkout.transaction_id, amount=1299)

    result = await service.handle_webhook("stripe", body, header)

    assert result.action == "credited"
    txn = await service.check_status(ctx, checkout.transaction_id)
    assert txn.status is TransactionStatus.COMPLETED
    assert txn.completed_at


@pytest.mark.asyncio
async def test_amount_mismatch_is_flagged_not_credited(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx)
    body, header = signed_notification(txn=checkout.transaction_id, amount=100)
    service = pay_factory.create_payment_service()

    result = await service.handle_webhook("phonepe", body, header)

    assert result.action == "flagged"
    assert await pay_factory.create_credit_ledger().balance(ctx.customer_id) == 5
    anomalies = await service.list_transactions(anomalies_only=True)
    assert [t.transaction_id for t in anomalies] == [checkout.transaction_id]
    assert "24900" in anomalies[0].review_note

    # held transactions are not polled
    polls_before = len(phonepe_http.requests)
    txn = await service.refresh_by_id(checkout.transaction_id)
    assert txn.status is TransactionStatus.PENDING
    assert len(phonepe_http.requests) == polls_before


@pytest.mark.asyncio
async def test_bad_signature_changes_nothing(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx)
    body, _ = signed_notification(txn=checkout.transaction_id)
    service = pay_factory.create_payment_service()

    with pytest.raises(SignatureInvalidError):
        await service.handle_webhook("phonepe", body, "0" * 64 + "###1")
    assert await pay_factory.create_credit_ledger().balance(ctx.customer_id) == 5


@pytest.mark.asyncio
async def test_failed_is_terminal(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx)
    service = pay_factory.create_payment_service()

    failed_body, failed_header = signed_notification(code="PAYMENT_ERROR", txn=checkout.transaction_id)
    ok_body, ok_header = signed_notification(txn=checkout.transaction_id)

    assert (await service.handle_webhook("phonepe", failed_body, failed_header)).action == "failed"
    assert (await service.handle_webhook("phonepe", ok_body, ok_header)).action == "ignored"
    assert await pay_factory.create_credit_ledger().balance(ctx.customer_id) == 5


@pytest.mark.asyncio
async def test_webhook_for_unknown_transaction_is_acknowledged(pay_factory):
    body, header = signed_notification(txn="TXN_404_nothing")
    result = await pay_factory.create_payment_service().handle_webhook("phonepe", body, header)
    assert result.action == "ignored"


@pytest.mark.asyncio
async def test_status_poll_reconciles_like_a_webhook(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx, credits=20)
    phonepe_http.responses.append(FakeResponse(200, {
        "code": "PAYMENT_SUCCESS",
        "data": {"merchantTransactionId": checkout.transaction_id, "amount": 9900},
    }))

    url = await pay_factory.create_payment_service().callback_redirect(
        "phonepe", checkout.transaction_id,
    )

    assert url == "https://app.example.com/buy-credits?status=success&gateway=phonepe"
    assert await pay_factory.create_credit_ledger().balance(ctx.customer_id) == 25


@pytest.mark.asyncio
async def test_status_poll_error_leaves_status(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx)
    phonepe_http.responses.append(FakeResponse(500, None))

    txn = await pay_factory.create_payment_service().check_status(ctx, checkout.transaction_id)
    assert txn.status is TransactionStatus.PENDING


@pytest.mark.asyncio
async def test_inconclusive_poll_keeps_purchase_open(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx)
    service = pay_factory.create_payment_service()
    phonepe_http.responses.append(FakeResponse(200, {"success": False, "code": "INTERNAL_SERVER_ERROR"}))
    phonepe_http.responses.append(FakeResponse(200, {"success": False, "code": "TRANSACTION_NOT_FOUND"}))

    for _ in range(2):
        txn = await service.check_status(ctx, checkout.transaction_id)
        assert txn.status is TransactionStatus.PENDING

    body, header = signed_notification(txn=checkout.transaction_id)
    result = await service.handle_webhook("phonepe", body, header)

    assert result.action == "credited"
    assert await pay_factory.create_credit_ledger().balance(ctx.customer_id) == 65


@pytest.mark.asyncio
async def test_declined_poll_fails_transaction(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx)
    phonepe_http.responses.append(FakeResponse(200, {"success": False, "code": "PAYMENT_DECLINED"}))

    txn = await pay_factory.create_payment_service().check_status(ctx, checkout.transaction_id)

    assert txn.status is TransactionStatus.FAILED


@pytest.mark.asyncio
async def test_poll_with_wrong_amount_is_flagged(pay_factory, phonepe_http):
    ctx = await make_customer(pay_factory, "a@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, ctx)
    phonepe_http.responses.append(FakeResponse(200, {
        "success": True,
        "code": "PAYMENT_SUCCESS",
        "data": {
            "merchantTransactionId": checkout.transaction_id,
            "transactionId": "T2401015555",
            "amount": 100,
        },
    }))
    service = pay_factory.create_payment_service()

    txn = await service.check_status(ctx, checkout.transaction_id)

    assert txn.status is TransactionStatus.PENDING
    assert "24900" in txn.review_note and "100" in txn.review_note
    assert await pay_factory.create_credit_ledger().balance(ctx.customer_id) == 5
    anomalies = await service.list_transactions(anomalies_only=True)
    assert [t.transaction_id for t in anomalies] == [checkout.transaction_id]


@pytest.mark.asyncio
async def test_stripe_poll_checks_amount(pay_factory, stripe_api):
    service = pay_factory.create_payment_service()
    stripe_api.payment_status = "paid"

    honest = await make_customer(pay_factory, "honest@example.com", 5)
    checkout = await service.create_checkout(honest, "stripe", {"credits": 60})
    stripe_api.amount_total = 1299
    txn = await service.check_status(honest, checkout.transaction_id)
    assert txn.status is TransactionStatus.COMPLETED
    assert await pay_factory.create_credit_ledger().balance(honest.customer_id) == 65

    short = await make_customer(pay_factory, "short@example.com", 5)
    checkout = await service.create_checkout(short, "stripe", {"credits": 60})
    stripe_api.amount_total = 1
    txn = await service.check_status(short, checkout.transaction_id)
    assert txn.status is TransactionStatus.PENDING
    assert txn.review_note
    assert await pay_factory.create_credit_ledger().balance(short.customer_id) == 5


@pytest.mark.asyncio
async def test_callback_without_transaction_reports_error(pay_factory):
    url = await pay_factory.create_payment_service().callback_redirect("phonepe", None)
    assert url.endswith("status=error&gateway=phonepe")


@pytest.mark.asyncio
async def test_status_of_someone_elses_transaction(pay_factory, phonepe_http):
    owner = await make_customer(pay_factory, "owner@example.com", 5)
    other = await make_customer(pay_factory, "other@example.com", 5)
    checkout = await _phonepe_checkout(pay_factory, phonepe_http, owner)

    with pytest.raises(TransactionNotFoundError):
        await pay_factory.create_payment_service().check_status(other, checkout.transaction_id)


@pytest.mark.asyncio
async def test_gateway_configs_list_prices(pay_factory):
    configs = pay_factory.create_payment_service().gateway_configs()
    assert [c.name for c in configs] == ["stripe", "phonepe"]
    assert configs[1].prices[60] == 24900
