"""Credit purchase endpoints and gateway webhooks.

Webhooks are unauthenticated: the gateway signature is the only trust
anchor, and it is checked before the payload is read. Anything that should
not be retried by the gateway (duplicates, unknown transactions, unhandled
events) is acknowledged with 200.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from factory import ServiceFactory
from domain.entities import PaymentTransaction
from domain.models import CREDIT_PACKS
from application.context import RequestContext
from adapters.rest.dependencies import get_factory, get_request_ctx
from adapters.rest.schemas import (
    CheckoutBody,
    CheckoutOut,
    GatewayOut,
    PaymentConfigOut,
    TransactionOut,
    WebhookAck,
)

router = APIRouter(prefix="/payments", tags=["payments"])


def _transaction_out(txn: PaymentTransaction) -> TransactionOut:
    return TransactionOut(
        transaction_id=txn.transaction_id,
        status=txn.status.value,
        credits=txn.credits,
        amount=txn.amount,
        currency=txn.currency,
        gateway=txn.gateway,
        created_at=txn.created_at,
        completed_at=txn.completed_at,
    )


@router.get("/config", response_model=PaymentConfigOut)
async def payment_config(factory: ServiceFactory = Depends(get_factory)):
    """Which gateways can take payments, and what each pack costs."""
    configs = factory.create_payment_service().gateway_configs()
    return PaymentConfigOut(
        gateways=[GatewayOut(name=c.name, currency=c.currency, prices=c.prices) for c in configs],
        packs=list(CREDIT_PACKS),
    )


@router.post("/{gateway}/checkout", response_model=CheckoutOut)
async def create_checkout(
    gateway: str,
    body: CheckoutBody,
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    result = await factory.create_payment_service().create_checkout(
        ctx, gateway, body.model_dump(),
    )
    return CheckoutOut(
        transaction_id=result.transaction_id,
        redirect_url=result.redirect_url,
        gateway=result.gateway,
        credits=result.credits,
        amount=result.amount,
        currency=result.currency,
    )


@router.post("/stripe/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    factory: ServiceFactory = Depends(get_factory),
):
    payload = await request.body()
    result = await factory.create_payment_service().handle_webhook(
        "stripe", payload, request.headers.get("stripe-signature"),
    )
    return WebhookAck(action=result.action)


@router.post("/phonepe/webhook", response_model=WebhookAck)
async def phonepe_webhook(
    request: Request,
    factory: ServiceFactory = Depends(get_factory),
):
    payload = await request.body()
    result = await factory.create_payment_service().handle_webhook(
        "phonepe", payload, request.headers.get("x-verify"),
    )
    return WebhookAck(action=result.action)


@router.api_route("/phonepe/callback", methods=["GET", "POST"])
async def phonepe_callback(
    transaction_id: Optional[str] = Query(None),
    factory: ServiceFactory = Depends(get_factory),
):
    """Browser lands here after the PhonePe pay page."""
    url = await factory.create_payment_service().callback_redirect("phonepe", transaction_id)
    return RedirectResponse(url=url, status_code=303)


@router.get("/transactions/{transaction_id}", response_model=TransactionOut)
async def transaction_status(
    transaction_id: str,
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    """Current status; a PENDING transaction is refreshed from the gateway first."""
    txn = await factory.create_payment_service().check_status(ctx, transaction_id)
    return _transaction_out(txn)
