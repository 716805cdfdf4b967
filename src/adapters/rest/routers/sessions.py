"""Protected chat session endpoints."""

from fastapi import APIRouter, Depends, Query

from factory import ServiceFactory
from domain.entities import ChatSession
from application.context import RequestContext
from application.validation import validate_rename
from adapters.rest.dependencies import get_factory, get_request_ctx
from adapters.rest.schemas import MessageOut, RenameBody, SessionOut

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _session_out(session: ChatSession) -> SessionOut:
    return SessionOut(
        session_id=session.session_id,
        title=session.title,
        keywords=session.keywords,
        food_names=session.food_names,
        message_count=session.message_count,
        preview=session.preview,
        created_at=session.created_at,
        last_message_at=session.last_message_at,
    )


@router.post("", response_model=SessionOut, status_code=201)
async def create_session(
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    session = await factory.create_chat_session_service().start_session(ctx)
    return _session_out(session)


@router.get("", response_model=list[SessionOut])
async def list_sessions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    sessions = await factory.create_chat_session_service().list_sessions(ctx, limit, offset)
    return [_session_out(s) for s in sessions]


@router.get("/search", response_model=list[SessionOut])
async def search_sessions(
    q: str = Query(..., min_length=1, max_length=100),
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    sessions = await factory.create_chat_session_service().search(ctx, q)
    return [_session_out(s) for s in sessions]


@router.get("/{session_id}/messages", response_model=list[MessageOut])
async def get_messages(
    session_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    messages = await factory.create_chat_session_service().get_messages(
        ctx, session_id, limit, offset,
    )
    return [
        MessageOut(
            id=m.id,
            text=m.text,
            sender=m.sender.value,
            timestamp=m.timestamp,
            recipe_generated=m.recipe_generated,
            recipe_id=m.recipe_id,
            is_fallback=m.is_fallback,
        )
        for m in messages
    ]


@router.put("/{session_id}", response_model=SessionOut)
async def rename_session(
    session_id: str,
    body: RenameBody,
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    title = validate_rename(body.model_dump())
    session = await factory.create_chat_session_service().rename(ctx, session_id, title)
    return _session_out(session)


@router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    await factory.create_chat_session_service().delete(ctx, session_id)
