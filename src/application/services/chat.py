"""
application.services.chat - Credit-metered chat orchestration.

One chat turn:
    1. Debit    atomic conditional decrement; a zero balance stops here.
    2. Generate call the completion client with history + profile.
    3. Success  persist user + AI message, return text and balance.
    4. Failure  refund exactly one credit, persist the canned fallback
                (flagged is_fallback), return it with an error indicator.

The debit always happens before the provider call and the refund after
it resolves. Turns share nothing but the credit balance, which is only
touched through the ledger's atomic primitives.
"""

from __future__ import annotations

import logging
from typing import Optional

from domain.exceptions import ProviderError
from domain.fallback import canned_response
from domain.models import UserProfile
from domain.ports import CompletionClientPort, CreditLedger
from application.context import RequestContext
from application.dto import ChatRequest, ChatTurnResult, RecipeRequest, RecipeResult
from application.services.chat_sessions import ChatSessionService
from application.services.profile import ProfileService

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "Service temporarily busy. Please try again shortly."
ERROR_MESSAGE = "Error generating AI response"


class ChatOrchestrator:
    """Ties the ledger, completion client and session store together."""

    def __init__(
        self,
        ledger: CreditLedger,
        completion_client: CompletionClientPort,
        sessions: ChatSessionService,
        profiles: ProfileService,
        history_limit: int = 20,
    ):
        self._ledger = ledger
        self._client = completion_client
        self._sessions = sessions
        self._profiles = profiles
        self._history_limit = history_limit

    async def handle_turn(self, ctx: RequestContext, request: ChatRequest) -> ChatTurnResult:
        """Run one chat turn for an already-validated request.

        Raises:
            SessionNotFoundError: session_id unknown or owned by someone else
                (checked before anything is debited).
            InsufficientCreditsError: balance was 0; nothing else happened.
        """
        session_id: Optional[str] = None
        if request.session_id:
            session = await self._sessions.get_owned(ctx, request.session_id)
            session_id = session.session_id

        balance = await self._ledger.debit_one(ctx.customer_id)
        logger.info(
            "[%s] Debited chat turn for customer %d (balance %d)",
            ctx.request_id, ctx.customer_id, balance,
        )

        try:
            if session_id is None:
                session_id = (await self._sessions.start_session(ctx)).session_id
                history = list(request.conversation_history)[-self._history_limit:]
            else:
                history = await self._sessions.load_history(session_id, self._history_limit)
            profile = await self._resolve_profile(ctx, request.user_profile)

            result = await self._client.complete(profile, history, request.message)
        except ProviderError as e:
            balance = await self._refund(ctx, balance)
            fallback = e.fallback_text or canned_response(request.message)
            if session_id is not None:
                await self._persist_turn(session_id, request.message, fallback, is_fallback=True)
            return ChatTurnResult(
                success=False,
                message=fallback,
                credits_remaining=balance,
                session_id=session_id,
                is_fallback=True,
                rate_limited=e.rate_limited,
                error=BUSY_MESSAGE if e.rate_limited else ERROR_MESSAGE,
            )
        except Exception:
            await self._refund(ctx, balance)
            raise

        await self._persist_turn(session_id, request.message, result.text, is_fallback=False)
        return ChatTurnResult(
            success=True,
            message=result.text,
            credits_remaining=balance,
            session_id=session_id,
            tokens_used=result.tokens_used,
        )

    async def generate_recipe(
        self, ctx: RequestContext, request: RecipeRequest,
    ) -> RecipeResult:
        """One-shot complete recipe. Same debit/refund rules, no session."""
        balance = await self._ledger.debit_one(ctx.customer_id)
        try:
            profile = await self._profiles.load_user_profile(ctx.customer_id)
            result = await self._client.complete_recipe(
                list(request.ingredients),
                preferences=request.preferences,
                skill_level=request.skill_level or (profile.skill_level if profile else ""),
                cooking_time=request.cooking_time,
                allergies=profile.allergies if profile else None,
            )
        except ProviderError as e:
            balance = await self._refund(ctx, balance)
            return RecipeResult(
                success=False,
                recipe=e.fallback_text or canned_response(" ".join(request.ingredients)),
                credits_remaining=balance,
                is_fallback=True,
                rate_limited=e.rate_limited,
                error=BUSY_MESSAGE if e.rate_limited else "Error generating recipe",
            )
        except Exception:
            await self._refund(ctx, balance)
            raise

        return RecipeResult(
            success=True,
            recipe=result.text,
            credits_remaining=balance,
            tokens_used=result.tokens_used,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _resolve_profile(
        self, ctx: RequestContext, override: Optional[UserProfile],
    ) -> Optional[UserProfile]:
        if override is not None and not override.is_empty:
            return override
        return await self._profiles.load_user_profile(ctx.customer_id)

    async def _refund(self, ctx: RequestContext, debited_balance: int) -> int:
        """Give the turn's credit back. Returns the balance to report."""
        try:
            balance = await self._ledger.credit(ctx.customer_id, 1)
        except Exception:
            logger.exception(
                "[%s] Credit refund failed for customer %d", ctx.request_id, ctx.customer_id,
            )
            return debited_balance
        logger.info(
            "[%s] Refunded 1 credit to customer %d (balance %d)",
            ctx.request_id, ctx.customer_id, balance,
        )
        return balance

    async def _persist_turn(
        self, session_id: str, user_text: str, ai_text: str, is_fallback: bool,
    ) -> None:
        """Append the user message then the AI message. Best effort."""
        try:
            await self._sessions.record_user_message(session_id, user_text)
            await self._sessions.record_ai_message(session_id, ai_text, is_fallback=is_fallback)
        except Exception:
            logger.exception("Failed to persist chat turn to session %s", session_id)

