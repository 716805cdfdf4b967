"""
domain.entities - Persistence-aware types (have IDs, timestamps).

Plain data records with no behaviour. Mutation happens in the repositories
and application services that operate on them, never on the entities
themselves.

Timestamps are set by the repository implementations, not by the entities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Sender(str, Enum):
    """Author of a chat message."""
    USER = "user"
    AI = "ai"


class TransactionStatus(str, Enum):
    """Lifecycle of a payment attempt. PENDING -> COMPLETED | FAILED, one way."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


DEFAULT_SESSION_TITLE = "New Chat"


@dataclass
class Customer:
    """Core customer entity. credits is only ever changed by the ledger."""
    id: Optional[int] = None
    email: str = ""
    password_hash: str = ""
    first_name: str = ""
    last_name: str = ""
    google_id: str = ""
    phone_number: str = ""
    skill_level: str = "beginner"
    dietary_preferences: list[str] = field(default_factory=list)
    allergies: list[str] = field(default_factory=list)
    favorite_ingredients: list[str] = field(default_factory=list)
    disliked_ingredients: list[str] = field(default_factory=list)
    credits: int = 0
    account_status: str = "active"
    last_login: str = ""
    created_at: str = ""
    updated_at: str = ""
    deleted_at: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class SessionMessage:
    """A single message in a chat session."""
    id: Optional[int] = None
    session_id: str = ""
    text: str = ""
    sender: Sender = Sender.USER
    timestamp: str = ""
    recipe_generated: bool = False
    recipe_id: Optional[str] = None
    is_fallback: bool = False  # canned reply, not model output


@dataclass
class ChatSession:
    """Metadata for a conversation. Messages are loaded separately."""
    id: Optional[int] = None
    customer_id: Optional[int] = None
    session_id: str = ""
    title: str = DEFAULT_SESSION_TITLE
    title_renamed: bool = False
    keywords: list[str] = field(default_factory=list)
    food_names: list[str] = field(default_factory=list)
    message_count: int = 0
    preview: str = ""
    created_at: str = ""
    last_message_at: str = ""
    updated_at: str = ""
    deleted_at: str = ""


@dataclass
class PaymentTransaction:
    """One purchase attempt for a credit pack.

    amount is in the gateway currency's minor unit (cents, paise).
    """
    id: Optional[int] = None
    transaction_id: str = ""
    customer_id: Optional[int] = None
    credits: int = 0
    amount: int = 0
    currency: str = ""
    gateway: str = ""
    status: TransactionStatus = TransactionStatus.PENDING
    gateway_reference: str = ""
    review_note: str = ""
    created_at: str = ""
    updated_at: str = ""
    completed_at: str = ""
