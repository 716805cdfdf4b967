"""
domain.ports - Abstract interfaces (Protocols) for all system boundaries.

These define WHAT the system needs without specifying HOW. Infrastructure
modules provide concrete implementations. Application services depend only
on these protocols, never on concrete classes.

Using typing.Protocol (structural typing) instead of ABC: any class that
implements the methods satisfies the port without explicit inheritance.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from domain.models import (
    CompletionResult,
    HistoryTurn,
    PaymentRequest,
    PaymentSession,
    PricingTable,
    UserProfile,
    VerifiedWebhook,
)
from domain.entities import (
    ChatSession,
    Customer,
    PaymentTransaction,
    SessionMessage,
    TransactionStatus,
)


# ---------------------------------------------------------------------------
# Provider Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class CompletionClientPort(Protocol):
    """Generate an assistant reply from persona, history and a new message.

    Raises ProviderTransientError / ProviderPermanentError with fallback_text
    populated when no model answer could be obtained.
    """

    async def complete(
        self,
        profile: Optional[UserProfile],
        history: list[HistoryTurn],
        user_message: str,
    ) -> CompletionResult: ...

    async def complete_recipe(
        self,
        ingredients: list[str],
        preferences: str = "",
        skill_level: str = "",
        cooking_time: str = "",
        allergies: Optional[list[str]] = None,
    ) -> CompletionResult: ...


@runtime_checkable
class PaymentGatewayPort(Protocol):
    """One hosted-checkout payment provider.

    A third gateway is added by implementing this protocol and registering
    it in the factory; nothing else changes.
    """

    name: str
    pricing: PricingTable

    async def create_payment(self, request: PaymentRequest) -> PaymentSession: ...

    def verify_webhook(
        self, raw_body: bytes, signature_header: str | None,
    ) -> VerifiedWebhook: ...

    async def fetch_status(
        self, transaction: PaymentTransaction,
    ) -> VerifiedWebhook: ...


# ---------------------------------------------------------------------------
# Repository Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class CustomerRepository(Protocol):
    """CRUD operations for Customer entities (never touches credits)."""

    async def get_by_id(self, customer_id: int) -> Customer | None: ...
    async def get_by_email(self, email: str) -> Customer | None: ...
    async def save(self, customer: Customer) -> int: ...
    async def update_profile(self, customer_id: int, fields: dict) -> None: ...
    async def touch_login(self, customer_id: int) -> None: ...
    async def soft_delete(self, customer_id: int) -> None: ...


@runtime_checkable
class CreditLedger(Protocol):
    """Atomic balance primitives. No read-modify-write at the call site."""

    async def debit_one(self, customer_id: int) -> int: ...
    async def credit(self, customer_id: int, amount: int) -> int: ...
    async def balance(self, customer_id: int) -> int: ...


@runtime_checkable
class ChatSessionRepository(Protocol):
    """Sessions plus their append-only message log."""

    async def create(self, customer_id: int, session_id: str) -> ChatSession: ...
    async def get(self, session_id: str) -> ChatSession | None: ...
    async def list_by_customer(
        self, customer_id: int, limit: int, offset: int,
    ) -> list[ChatSession]: ...
    async def search(self, customer_id: int, term: str) -> list[ChatSession]: ...
    async def append_message(self, message: SessionMessage) -> SessionMessage: ...
    async def get_messages(
        self, session_id: str, limit: int, offset: int,
    ) -> list[SessionMessage]: ...
    async def recent_messages(
        self, session_id: str, limit: int,
    ) -> list[SessionMessage]: ...
    async def rename(self, session_id: str, title: str) -> None: ...
    async def soft_delete(self, session_id: str) -> None: ...


@runtime_checkable
class TransactionRepository(Protocol):
    """Payment transactions with one-way, conditional status transitions."""

    async def create(self, transaction: PaymentTransaction) -> int: ...
    async def get(self, transaction_id: str) -> PaymentTransaction | None: ...
    async def list(
        self,
        status: TransactionStatus | None = None,
        anomalies_only: bool = False,
        limit: int = 50,
    ) -> list[PaymentTransaction]: ...
    async def set_gateway_reference(
        self, transaction_id: str, reference: str,
    ) -> None: ...
    async def complete_and_credit(
        self, transaction_id: str, gateway_reference: str = "",
    ) -> int | None: ...
    async def mark_failed(self, transaction_id: str) -> bool: ...
    async def flag_for_review(self, transaction_id: str, note: str) -> None: ...
