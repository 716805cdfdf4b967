"""
application.services.chat_sessions - Chat session persistence service.

Manages session lifecycle and the message log. Used by the chat
orchestrator to persist turns and by the session endpoints directly.
Ownership is enforced here: a session owned by another customer is
reported exactly like a missing one.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from domain.entities import ChatSession, SessionMessage, Sender
from domain.exceptions import SessionNotFoundError
from domain.models import HistoryTurn
from domain.ports import ChatSessionRepository
from domain.vocabulary import looks_like_recipe
from application.context import RequestContext

logger = logging.getLogger(__name__)


class ChatSessionService:
    """Creates, lists and appends to chat sessions."""

    def __init__(self, session_repo: ChatSessionRepository):
        self._session_repo = session_repo

    async def start_session(self, ctx: RequestContext) -> ChatSession:
        session = await self._session_repo.create(ctx.customer_id, uuid4().hex)
        logger.info(
            "Created chat session %s for customer %d",
            session.session_id, ctx.customer_id,
        )
        return session

    async def get_owned(self, ctx: RequestContext, session_id: str) -> ChatSession:
        session = await self._session_repo.get(session_id)
        if session is None or session.customer_id != ctx.customer_id:
            raise SessionNotFoundError(f"Chat session {session_id} not found.")
        return session

    async def list_sessions(
        self, ctx: RequestContext, limit: int = 20, offset: int = 0,
    ) -> list[ChatSession]:
        """Most recently active first."""
        return await self._session_repo.list_by_customer(ctx.customer_id, limit, offset)

    async def search(self, ctx: RequestContext, term: str) -> list[ChatSession]:
        if not term.strip():
            return []
        return await self._session_repo.search(ctx.customer_id, term)

    async def get_messages(
        self, ctx: RequestContext, session_id: str, limit: int = 50, offset: int = 0,
    ) -> list[SessionMessage]:
        await self.get_owned(ctx, session_id)
        return await self._session_repo.get_messages(session_id, limit, offset)

    async def rename(self, ctx: RequestContext, session_id: str, title: str) -> ChatSession:
        """Set a custom title; automatic titling stops for this session."""
        await self.get_owned(ctx, session_id)
        await self._session_repo.rename(session_id, title)
        return await self.get_owned(ctx, session_id)

    async def delete(self, ctx: RequestContext, session_id: str) -> None:
        await self.get_owned(ctx, session_id)
        await self._session_repo.soft_delete(session_id)
        logger.info("Deleted chat session %s", session_id)

    async def record_user_message(self, session_id: str, text: str) -> SessionMessage:
        return await self._session_repo.append_message(
            SessionMessage(session_id=session_id, text=text, sender=Sender.USER),
        )

    async def record_ai_message(
        self, session_id: str, text: str, is_fallback: bool = False,
    ) -> SessionMessage:
        return await self._session_repo.append_message(
            SessionMessage(
                session_id=session_id,
                text=text,
                sender=Sender.AI,
                recipe_generated=not is_fallback and looks_like_recipe(text),
                is_fallback=is_fallback,
            ),
        )

    async def load_history(self, session_id: str, limit: int = 20) -> list[HistoryTurn]:
        """Recent turns for the prompt. Canned fallback replies are left out."""
        messages = await self._session_repo.recent_messages(session_id, limit)
        return [
            HistoryTurn(sender=m.sender, text=m.text)
            for m in messages
            if not m.is_fallback
        ]
