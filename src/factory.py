"""
factory - Composition root for the recipe assistant.

ALL dependency wiring happens here. No other module constructs its own
dependencies. Adapters (REST, CLI) call this factory to get fully
configured services.

Usage:
    from factory import ServiceFactory
    from infrastructure.config import Settings

    config = Settings.from_env()
    factory = ServiceFactory(config)
    await factory.initialize()  # one-time startup

    orchestrator = factory.create_chat_orchestrator()
    result = await orchestrator.handle_turn(ctx, request)
"""

from __future__ import annotations

import logging
from typing import Optional

from domain.ports import CompletionClientPort, PaymentGatewayPort
from infrastructure.config import Settings
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.migrations import run_migrations
from infrastructure.persistence.customer_repo import SQLiteCustomerRepository
from infrastructure.persistence.credit_ledger import SQLiteCreditLedger
from infrastructure.persistence.chat_session_repo import SQLiteChatSessionRepository
from infrastructure.persistence.transaction_repo import SQLiteTransactionRepository
from infrastructure.llm.gemini_client import GeminiCompletionClient, UnconfiguredCompletionClient
from infrastructure.payments.stripe_gateway import StripeGateway
from infrastructure.payments.phonepe_gateway import PhonePeGateway
from application.gateway_registry import GatewayRegistry
from application.services.authentication import AuthenticationService
from application.services.profile import ProfileService
from application.services.chat_sessions import ChatSessionService
from application.services.chat import ChatOrchestrator
from application.services.payments import PaymentService

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Composition root: wires all dependencies together.

    Call initialize() once at startup, then create services as needed.
    The completion client and gateways can be injected (tests); otherwise
    they are built from config, with typed not-configured variants when
    credentials are missing.
    """

    def __init__(
        self,
        config: Settings,
        completion_client: Optional[CompletionClientPort] = None,
        gateways: Optional[list[PaymentGatewayPort]] = None,
    ):
        self._config = config
        self._connection = AsyncSQLiteConnection(config.db_path)
        self._completion_client = completion_client or self._build_completion_client()
        self._gateways = GatewayRegistry(
            gateways if gateways is not None else self._build_gateways()
        )
        self._initialized = False

    @property
    def config(self) -> Settings:
        return self._config

    async def initialize(self) -> None:
        """One-time startup: run migrations.

        Must be called before creating services.
        """
        logger.info("Initializing ServiceFactory...")
        await run_migrations(self._connection)
        self._initialized = True
        logger.info(
            "ServiceFactory ready (db=%s, gateways=%s)",
            self._config.db_path, ", ".join(self._gateways.configured()) or "none",
        )

    # ------------------------------------------------------------------
    # Service creation
    # ------------------------------------------------------------------

    def create_authentication_service(self) -> AuthenticationService:
        return AuthenticationService(
            customer_repo=self.create_customer_repository(),
            jwt_secret=self._config.jwt_secret,
            jwt_expiry_hours=self._config.jwt_expiry_hours,
            welcome_credits=self._config.welcome_credits,
        )

    def create_profile_service(self) -> ProfileService:
        return ProfileService(customer_repo=self.create_customer_repository())

    def create_chat_session_service(self) -> ChatSessionService:
        return ChatSessionService(
            session_repo=SQLiteChatSessionRepository(self._connection),
        )

    def create_chat_orchestrator(self) -> ChatOrchestrator:
        """Create a ChatOrchestrator with all dependencies wired."""
        self._ensure_initialized()
        return ChatOrchestrator(
            ledger=self.create_credit_ledger(),
            completion_client=self._completion_client,
            sessions=self.create_chat_session_service(),
            profiles=self.create_profile_service(),
            history_limit=self._config.chat_history_messages,
        )

    def create_payment_service(self) -> PaymentService:
        self._ensure_initialized()
        return PaymentService(
            customer_repo=self.create_customer_repository(),
            transaction_repo=SQLiteTransactionRepository(self._connection),
            gateways=self._gateways,
            base_url=self._config.base_url,
        )

    def create_customer_repository(self) -> SQLiteCustomerRepository:
        return SQLiteCustomerRepository(self._connection)

    def create_credit_ledger(self) -> SQLiteCreditLedger:
        return SQLiteCreditLedger(self._connection)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_completion_client(self) -> CompletionClientPort:
        if not self._config.gemini_api_key:
            logger.warning("GEMINI_API_KEY not set: chat will answer with fallbacks only")
            return UnconfiguredCompletionClient()
        return GeminiCompletionClient(
            api_key=self._config.gemini_api_key,
            model=self._config.gemini_model,
            alt_models=self._config.gemini_alt_models,
            base_url=self._config.gemini_base_url,
            timeout=self._config.llm_timeout_seconds,
            max_attempts=self._config.llm_max_attempts,
            backoff_base=self._config.llm_backoff_base_seconds,
            history_limit=self._config.chat_history_messages,
        )

    def _build_gateways(self) -> list[PaymentGatewayPort]:
        gateways: list[PaymentGatewayPort] = []
        if self._config.stripe_configured:
            gateways.append(StripeGateway(
                secret_key=self._config.stripe_secret_key,
                webhook_secret=self._config.stripe_webhook_secret,
                pricing=self._config.stripe_prices,
                return_url=f"{self._config.base_url}/buy-credits",
            ))
        else:
            logger.info("Stripe not configured")
        if self._config.phonepe_configured:
            gateways.append(PhonePeGateway(
                merchant_id=self._config.phonepe_merchant_id,
                salt_key=self._config.phonepe_salt_key,
                salt_index=self._config.phonepe_salt_index,
                api_base=self._config.phonepe_api_base,
                pricing=self._config.phonepe_prices,
                callback_base=self._config.public_api_url,
                timeout=self._config.gateway_timeout_seconds,
            ))
        else:
            logger.info("PhonePe not configured")
        return gateways

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "ServiceFactory not initialized. Call await factory.initialize() first."
            )
