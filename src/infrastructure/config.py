"""
infrastructure.config - Typed, injectable configuration.

A frozen dataclass that can be constructed from environment or passed
explicitly. Optional credentials left empty mean "not configured"; the
factory turns that into a typed not-configured component instead of
scattering None checks.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

from domain.models import CREDIT_PACKS, PricingTable

logger = logging.getLogger(__name__)

# PhonePe prices (INR) used when PHONEPE_PRICE_<pack> is not set
_PHONEPE_DEFAULT_PRICES = {20: "99", 60: "249", 150: "499"}


def _to_minor_units(raw: str) -> Optional[int]:
    try:
        value = Decimal(raw.strip())
    except (InvalidOperation, AttributeError):
        return None
    if value <= 0:
        return None
    return int((value * 100).to_integral_value())


def parse_price_table(
    prefix: str,
    currency: str,
    defaults: Optional[dict[int, str]] = None,
) -> PricingTable:
    """Read <prefix><pack> env vars (major units) into a PricingTable.

    Packs without a usable price are left out, which makes them an
    unconfigured pack for that gateway.
    """
    defaults = defaults or {}
    prices: dict[int, int] = {}
    for pack in CREDIT_PACKS:
        raw = os.getenv(f"{prefix}{pack}", defaults.get(pack, ""))
        if not raw:
            continue
        minor = _to_minor_units(raw)
        if minor is None:
            logger.warning("Ignoring invalid price %r for %s%d", raw, prefix, pack)
            continue
        prices[pack] = minor
    return PricingTable(currency=currency, prices=prices)


@dataclass(frozen=True)
class Settings:
    """Centralized configuration for the recipe assistant.

    No module-level globals. Construct via from_env() or pass explicitly
    in tests.
    """
    # Database
    db_path: str = "recipes.db"

    # JWT
    jwt_secret: str = "change-me-in-production"
    jwt_expiry_hours: int = 24

    # Customers
    welcome_credits: int = 10

    # Public URL of the web front end (payment redirects)
    base_url: str = "http://localhost:3000"
    # Public URL of this API (gateway callbacks and webhooks)
    public_api_url: str = "http://localhost:8000"

    log_level: str = "INFO"

    # ── AI completion (Gemini generateContent) ──────────────────
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_alt_models: tuple[str, ...] = ("gemini-1.5-pro",)
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    llm_timeout_seconds: float = 20.0
    llm_max_attempts: int = 3
    llm_backoff_base_seconds: float = 0.2

    # Chat
    chat_history_messages: int = 20
    chat_max_message_chars: int = 2000

    # ── Stripe ──────────────────────────────────────────────────
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_currency: str = "usd"
    stripe_prices: PricingTable = field(
        default_factory=lambda: PricingTable(currency="usd"),
    )

    # ── PhonePe ─────────────────────────────────────────────────
    phonepe_merchant_id: str = ""
    phonepe_salt_key: str = ""
    phonepe_salt_index: str = "1"
    phonepe_env: str = "sandbox"
    phonepe_prices: PricingTable = field(
        default_factory=lambda: PricingTable(
            currency="inr",
            prices={20: 9900, 60: 24900, 150: 49900},
        ),
    )

    gateway_timeout_seconds: float = 15.0

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key and self.stripe_webhook_secret)

    @property
    def phonepe_configured(self) -> bool:
        return bool(self.phonepe_merchant_id and self.phonepe_salt_key)

    @property
    def phonepe_api_base(self) -> str:
        if self.phonepe_env == "production":
            return "https://api.phonepe.com/apis/hermes"
        return "https://api-preprod.phonepe.com/apis/pg-sandbox"

    @classmethod
    def from_env(cls) -> Settings:
        """Build Settings from environment variables (and a .env file)."""
        from dotenv import load_dotenv
        load_dotenv()

        alt_models = tuple(
            m.strip()
            for m in os.getenv("GEMINI_ALT_MODELS", "gemini-1.5-pro").split(",")
            if m.strip()
        )
        stripe_currency = os.getenv("STRIPE_CURRENCY", "usd").lower()

        return cls(
            db_path=os.getenv("DB_PATH", "recipes.db"),
            jwt_secret=os.getenv("JWT_SECRET", "change-me-in-production"),
            jwt_expiry_hours=int(os.getenv("JWT_EXPIRY_HOURS", "24")),
            welcome_credits=int(os.getenv("WELCOME_CREDITS", "10")),
            base_url=os.getenv("BASE_URL", "http://localhost:3000").rstrip("/"),
            public_api_url=os.getenv("PUBLIC_API_URL", "http://localhost:8000").rstrip("/"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),

            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            gemini_alt_models=alt_models,
            gemini_base_url=os.getenv(
                "GEMINI_BASE_URL",
                "https://generativelanguage.googleapis.com/v1beta",
            ),
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "20")),
            llm_max_attempts=int(os.getenv("LLM_MAX_ATTEMPTS", "3")),
            llm_backoff_base_seconds=float(os.getenv("LLM_BACKOFF_BASE_SECONDS", "0.2")),

            chat_history_messages=int(os.getenv("CHAT_HISTORY_MESSAGES", "20")),
            chat_max_message_chars=int(os.getenv("CHAT_MAX_MESSAGE_CHARS", "2000")),

            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            stripe_currency=stripe_currency,
            stripe_prices=parse_price_table("STRIPE_PRICE_", stripe_currency),

            phonepe_merchant_id=os.getenv("PHONEPE_MERCHANT_ID", ""),
            phonepe_salt_key=os.getenv("PHONEPE_SALT_KEY", ""),
            phonepe_salt_index=os.getenv("PHONEPE_SALT_INDEX", "1"),
            phonepe_env=os.getenv("PHONEPE_ENV", "sandbox"),
            phonepe_prices=parse_price_table(
                "PHONEPE_PRICE_", "inr", _PHONEPE_DEFAULT_PRICES,
            ),

            gateway_timeout_seconds=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "15")),
        )
