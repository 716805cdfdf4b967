"""
application.dto - Data Transfer Objects for service input/output.

Inputs are produced by application.validation from raw request data;
outputs are what services hand back to the REST and CLI adapters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from domain.models import HistoryTurn, UserProfile


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RegisterRequest:
    """Input for customer signup."""
    email: str
    password: str
    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""


@dataclass(frozen=True)
class LoginRequest:
    """Input for customer login."""
    email: str
    password: str


@dataclass(frozen=True)
class AuthToken:
    """JWT token response after successful signup/login."""
    access_token: str
    token_type: str = "bearer"
    customer_id: int = 0
    credits: int = 0


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChatRequest:
    """A validated chat turn.

    conversation_history is only used when session_id is None.
    user_profile overrides the stored profile when given.
    """
    message: str
    session_id: Optional[str] = None
    conversation_history: tuple[HistoryTurn, ...] = ()
    user_profile: Optional[UserProfile] = None


@dataclass(frozen=True)
class ChatTurnResult:
    """Outcome of one chat turn.

    On failure, message holds the canned fallback and is_fallback is True.
    """
    success: bool
    message: str
    credits_remaining: int
    session_id: Optional[str] = None
    tokens_used: int = 0
    is_fallback: bool = False
    rate_limited: bool = False
    error: str = ""


@dataclass(frozen=True)
class RecipeRequest:
    """Input for one-shot complete recipe generation."""
    ingredients: tuple[str, ...]
    preferences: str = ""
    skill_level: str = ""
    cooking_time: str = ""


@dataclass(frozen=True)
class RecipeResult:
    success: bool
    recipe: str
    credits_remaining: int
    tokens_used: int = 0
    is_fallback: bool = False
    rate_limited: bool = False
    error: str = ""


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CheckoutRequest:
    """A validated purchase of one credit pack through one gateway."""
    gateway: str
    credits: int


@dataclass(frozen=True)
class CheckoutResult:
    transaction_id: str
    redirect_url: str
    gateway: str
    credits: int
    amount: int
    currency: str


@dataclass(frozen=True)
class GatewayConfig:
    """Public view of one configured gateway and its pack prices."""
    name: str
    currency: str
    prices: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ReconcileResult:
    """What a webhook or status refresh did to the stored transaction."""
    transaction_id: Optional[str]
    action: str             # credited | failed | ignored | pending | flagged
    credits_balance: Optional[int] = None
