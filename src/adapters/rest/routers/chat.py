"""Protected chat endpoints: one credit per answered turn."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from factory import ServiceFactory
from application.context import RequestContext
from application.validation import validate_chat_request, validate_recipe_request
from adapters.rest.dependencies import get_factory, get_request_ctx
from adapters.rest.schemas import ChatBody, ChatOut, RecipeBody, RecipeOut

router = APIRouter(prefix="/chat", tags=["chat"])


def _failure_status(rate_limited: bool) -> int:
    return 429 if rate_limited else 500


@router.post("", response_model=ChatOut)
async def chat(
    body: ChatBody,
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    """Answer one message.

    402 when out of credits (nothing debited), 429 / 500 with
    fallback_response when the model could not answer (credit refunded).
    """
    request = validate_chat_request(
        body.model_dump(exclude_none=True),
        max_chars=factory.config.chat_max_message_chars,
    )
    result = await factory.create_chat_orchestrator().handle_turn(ctx, request)

    if result.success:
        return ChatOut(
            success=True,
            message=result.message,
            credits_remaining=result.credits_remaining,
            session_id=result.session_id,
            tokens_used=result.tokens_used,
        )
    out = ChatOut(
        success=False,
        error=result.error,
        fallback_response=result.message,
        credits_remaining=result.credits_remaining,
        session_id=result.session_id,
    )
    return JSONResponse(
        status_code=_failure_status(result.rate_limited),
        content=out.model_dump(),
    )


@router.post("/recipe", response_model=RecipeOut)
async def complete_recipe(
    body: RecipeBody,
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    request = validate_recipe_request(body.model_dump(exclude_none=True))
    result = await factory.create_chat_orchestrator().generate_recipe(ctx, request)

    if result.success:
        return RecipeOut(
            success=True,
            recipe=result.recipe,
            credits_remaining=result.credits_remaining,
            tokens_used=result.tokens_used,
        )
    out = RecipeOut(
        success=False,
        error=result.error,
        fallback_response=result.recipe,
        credits_remaining=result.credits_remaining,
    )
    return JSONResponse(
        status_code=_failure_status(result.rate_limited),
        content=out.model_dump(),
    )
