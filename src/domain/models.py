"""
domain.models - Value objects for chat completion and payments.

These are immutable data containers with no business logic and no
dependencies on infrastructure (no HTTP, no Stripe SDK, no SQLite).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from domain.entities import Sender


SKILL_LEVELS = ("beginner", "intermediate", "advanced", "professional")

DIETARY_PREFERENCES = (
    "vegetarian", "vegan", "gluten-free", "dairy-free",
    "keto", "paleo", "halal", "kosher",
)

CREDIT_PACKS = (20, 60, 150)


# ---------------------------------------------------------------------------
# Chat / completion
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UserProfile:
    """Cooking profile injected into the prompt.

    Allergies are hard constraints; likes and dislikes are preferences.
    """
    skill_level: str = ""
    dietary_preferences: list[str] = field(default_factory=list)
    allergies: list[str] = field(default_factory=list)
    likes: list[str] = field(default_factory=list)
    dislikes: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.skill_level or self.dietary_preferences or self.allergies
            or self.likes or self.dislikes
        )


@dataclass(frozen=True)
class HistoryTurn:
    """One prior message as seen by the prompt builder."""
    sender: Sender
    text: str


@dataclass(frozen=True)
class CompletionResult:
    """Successful model answer."""
    text: str
    tokens_used: int = 0
    model: str = ""


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

class WebhookOutcome(str, Enum):
    """Normalized payment outcome reported by a gateway."""
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"


@dataclass(frozen=True)
class PaymentRequest:
    """What a gateway needs to open a hosted payment page."""
    transaction_id: str
    customer_id: int
    credits: int
    amount: int           # minor units
    currency: str
    customer_email: str = ""
    customer_name: str = ""
    customer_phone: str = ""


@dataclass(frozen=True)
class PaymentSession:
    """Gateway answer to a payment creation call."""
    redirect_url: str
    transaction_id: str
    gateway_reference: str = ""


@dataclass(frozen=True)
class VerifiedWebhook:
    """A webhook payload whose signature has been checked.

    transaction_id is None for events that do not concern a purchase.
    amount is None when the gateway payload carries no amount to compare.
    """
    transaction_id: Optional[str]
    outcome: WebhookOutcome
    amount: Optional[int] = None
    gateway_reference: str = ""
    event_type: str = ""


@dataclass(frozen=True)
class PricingTable:
    """Static credit-pack -> price table for one gateway (minor units)."""
    currency: str
    prices: dict[int, int] = field(default_factory=dict)

    def price_for(self, credits: int) -> Optional[int]:
        return self.prices.get(credits)

    @property
    def packs(self) -> list[int]:
        return sorted(self.prices)
