"""
infrastructure.payments.phonepe_gateway - PhonePe Standard Checkout adapter.

Implements PaymentGatewayPort against the PhonePe PG v1 API. Uses requests
via run_in_executor for async compat.

Request signing (X-VERIFY):
    pay:     sha256(base64(payload) + "/pg/v1/pay" + salt_key) "###" salt_index
    status:  sha256("/pg/v1/status/{mid}/{txn}" + salt_key) "###" salt_index
    webhook: sha256(response + "/pg/v1/notify" + salt_key) "###" salt_index

Webhook bodies are JSON {"response": <base64 JSON>}; the decoded payload's
"code" gives the outcome.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import hmac
import json
import logging
from typing import Any, Optional

import requests

from domain.entities import PaymentTransaction
from domain.exceptions import (
    ProviderPermanentError,
    ProviderTransientError,
    SignatureInvalidError,
)
from domain.models import (
    PaymentRequest,
    PaymentSession,
    PricingTable,
    VerifiedWebhook,
    WebhookOutcome,
)

logger = logging.getLogger(__name__)

PAY_ENDPOINT = "/pg/v1/pay"
NOTIFY_ENDPOINT = "/pg/v1/notify"

# Codes after which the payment can no longer succeed
FAILURE_CODES = frozenset({"PAYMENT_ERROR", "PAYMENT_DECLINED", "TIMED_OUT"})


def outcome_for_code(code: Optional[str]) -> WebhookOutcome:
    """Map a PhonePe response code onto the gateway-neutral outcome.

    Only PAYMENT_SUCCESS and the definite failure codes settle a payment.
    Everything else (PAYMENT_PENDING, INTERNAL_SERVER_ERROR,
    TRANSACTION_NOT_FOUND, unknown codes) is PENDING and gets asked again.
    """
    if code == "PAYMENT_SUCCESS":
        return WebhookOutcome.SUCCESS
    if code in FAILURE_CODES:
        return WebhookOutcome.FAILED
    return WebhookOutcome.PENDING


def event_from_payload(
    payload: Any, transaction_id: Optional[str] = None,
) -> VerifiedWebhook:
    """Build the gateway-neutral event from a decoded PhonePe response.

    Webhook bodies and status responses share this shape. transaction_id
    overrides the merchantTransactionId the payload carries.

    Raises:
        ValueError: payload or its data is not an object, or amount is not
            a number.
    """
    if not isinstance(payload, dict):
        raise ValueError("PhonePe payload is not a JSON object")
    data = payload.get("data") or {}
    if not isinstance(data, dict):
        raise ValueError("PhonePe payload data is not a JSON object")
    code = payload.get("code")
    if not isinstance(code, str):
        code = ""
    amount = data.get("amount")
    try:
        amount = int(amount) if amount is not None else None
    except (TypeError, ValueError) as e:
        raise ValueError(f"PhonePe amount {amount!r} is not a number") from e
    return VerifiedWebhook(
        transaction_id=transaction_id or data.get("merchantTransactionId"),
        outcome=outcome_for_code(code),
        amount=amount,
        gateway_reference=data.get("transactionId") or "",
        event_type=code,
    )


class PhonePeGateway:
    """UPI / wallet payments through PhonePe's hosted pay page."""

    name = "phonepe"

    def __init__(
        self,
        merchant_id: str,
        salt_key: str,
        salt_index: str,
        api_base: str,
        pricing: PricingTable,
        callback_base: str,
        timeout: float = 15.0,
        session: Any = None,
    ):
        self._merchant_id = merchant_id
        self._salt_key = salt_key
        self._salt_index = str(salt_index)
        self._api_base = api_base.rstrip("/")
        self.pricing = pricing
        self._callback_base = callback_base.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def x_verify(self, *parts: str) -> str:
        digest = hashlib.sha256("".join(parts + (self._salt_key,)).encode()).hexdigest()
        return f"{digest}###{self._salt_index}"

    async def create_payment(self, request: PaymentRequest) -> PaymentSession:
        payload = {
            "merchantId": self._merchant_id,
            "merchantTransactionId": request.transaction_id,
            "merchantUserId": f"CUST{request.customer_id}",
            "amount": request.amount,
            "redirectUrl": (
                f"{self._callback_base}/payments/phonepe/callback"
                f"?transaction_id={request.transaction_id}"
            ),
            "redirectMode": "REDIRECT",
            "callbackUrl": f"{self._callback_base}/payments/phonepe/webhook",
            "paymentInstrument": {"type": "PAY_PAGE"},
        }
        if request.customer_phone:
            payload["mobileNumber"] = request.customer_phone

        encoded = base64.b64encode(json.dumps(payload).encode()).decode()
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self.x_verify(encoded, PAY_ENDPOINT),
        }
        loop = asyncio.get_event_loop()
        data = await loop.run_in_executor(
            None, self._call_api, "POST", PAY_ENDPOINT, headers, {"request": encoded},
        )

        try:
            redirect_url = data["data"]["instrumentResponse"]["redirectInfo"]["url"]
        except (KeyError, TypeError) as e:
            raise ProviderPermanentError(
                f"PhonePe pay response had no redirect URL: {data.get('message', '')}",
            ) from e

        logger.info("Created PhonePe payment for transaction %s", request.transaction_id)
        return PaymentSession(
            redirect_url=redirect_url,
            transaction_id=request.transaction_id,
        )

    def verify_webhook(
        self, raw_body: bytes, signature_header: str | None,
    ) -> VerifiedWebhook:
        """Verify X-VERIFY over the base64 response, then decode it.

        Raises:
            SignatureInvalidError: header missing or wrong, or body unreadable.
        """
        if not signature_header:
            raise SignatureInvalidError("Missing X-VERIFY header.")
        try:
            encoded = json.loads(raw_body)["response"]
            if not isinstance(encoded, str):
                raise TypeError("response is not a string")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("PhonePe webhook body unreadable: %s", e)
            raise SignatureInvalidError("Malformed webhook payload.") from e

        expected = self.x_verify(encoded, NOTIFY_ENDPOINT)
        if not hmac.compare_digest(expected, signature_header.strip()):
            logger.warning("PhonePe webhook signature rejected")
            raise SignatureInvalidError("X-VERIFY mismatch.")

        try:
            return event_from_payload(json.loads(base64.b64decode(encoded)))
        except (binascii.Error, ValueError) as e:
            logger.warning("PhonePe webhook response unreadable: %s", e)
            raise SignatureInvalidError("Malformed webhook payload.") from e

    async def fetch_status(self, transaction: PaymentTransaction) -> VerifiedWebhook:
        """Ask PhonePe for the payment state. Amount and reference come back too."""
        endpoint = f"/pg/v1/status/{self._merchant_id}/{transaction.transaction_id}"
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self.x_verify(endpoint),
            "X-MERCHANT-ID": self._merchant_id,
        }
        loop = asyncio.get_event_loop()
        data = await loop.run_in_executor(
            None, self._call_api, "GET", endpoint, headers, None,
        )
        try:
            return event_from_payload(data, transaction_id=transaction.transaction_id)
        except ValueError as e:
            raise ProviderPermanentError(f"PhonePe status response unreadable: {e}") from e

    def _call_api(
        self, method: str, endpoint: str, headers: dict, body: Optional[dict],
    ) -> dict:
        """Synchronous PhonePe call (runs in thread pool)."""
        url = f"{self._api_base}{endpoint}"
        try:
            if method == "POST":
                response = self._session.post(
                    url, json=body, headers=headers, timeout=self._timeout,
                )
            else:
                response = self._session.get(url, headers=headers, timeout=self._timeout)
        except requests.exceptions.Timeout:
            raise ProviderTransientError(f"PhonePe timed out after {self._timeout}s")
        except requests.exceptions.ConnectionError as e:
            raise ProviderTransientError(f"PhonePe unreachable: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ProviderPermanentError(f"PhonePe request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        status = response.status_code
        if status == 429 or status >= 500:
            raise ProviderTransientError(
                f"PhonePe returned HTTP {status}", status_code=status,
            )
        if status >= 400:
            raise ProviderPermanentError(
                f"PhonePe returned HTTP {status}: {data.get('message', '')}",
                status_code=status,
            )
        return data
