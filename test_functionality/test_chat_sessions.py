"""
Chat session store: ordering, derived fields, ownership, search, rename.
"""
import pytest

from domain.entities import DEFAULT_SESSION_TITLE, Sender
from domain.exceptions import SessionNotFoundError
from application.context import RequestContext

from conftest import make_customer


@pytest.mark.asyncio
async def test_messages_come_back_in_append_order(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    service = factory.create_chat_session_service()
    session = await service.start_session(ctx)

    await service.record_user_message(session.session_id, "A")
    await service.record_ai_message(session.session_id, "B")

    messages = await service.get_messages(ctx, session.session_id)
    assert [m.text for m in messages] == ["A", "B"]
    assert [m.sender for m in messages] == [Sender.USER, Sender.AI]

    stored = await service.get_owned(ctx, session.session_id)
    assert stored.message_count == 2
    assert stored.preview == "B"


@pytest.mark.asyncio
async def test_user_message_derives_title_and_terms(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    service = factory.create_chat_session_service()
    session = await service.start_session(ctx)
    assert session.title == DEFAULT_SESSION_TITLE

    await service.record_user_message(session.session_id, "I have chicken and want something spicy")

    stored = await service.get_owned(ctx, session.session_id)
    assert "chicken" in stored.food_names
    assert "spicy" in stored.keywords
    assert stored.title != DEFAULT_SESSION_TITLE
    assert stored.title == "Chicken Spicy Recipe"


@pytest.mark.asyncio
async def test_ai_messages_do_not_change_terms(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    service = factory.create_chat_session_service()
    session = await service.start_session(ctx)

    await service.record_ai_message(session.session_id, "How about beef?")

    stored = await service.get_owned(ctx, session.session_id)
    assert stored.food_names == []
    assert stored.title == DEFAULT_SESSION_TITLE
    assert stored.message_count == 1


@pytest.mark.asyncio
async def test_recipe_flag_on_ai_messages(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    service = factory.create_chat_session_service()
    session = await service.start_session(ctx)

    recipe = await service.record_ai_message(
        session.session_id, "Ingredients: rice, egg\nSteps: 1. Fry the rice",
    )
    fallback = await service.record_ai_message(
        session.session_id, "Ingredients: rice\nSteps: cook", is_fallback=True,
    )
    assert recipe.recipe_generated is True
    assert fallback.recipe_generated is False
    assert fallback.is_fallback is True


@pytest.mark.asyncio
async def test_rename_locks_title(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    service = factory.create_chat_session_service()
    session = await service.start_session(ctx)

    renamed = await service.rename(ctx, session.session_id, "Weeknight ideas")
    assert renamed.title == "Weeknight ideas"

    await service.record_user_message(session.session_id, "beef tacos?")
    stored = await service.get_owned(ctx, session.session_id)
    assert stored.title == "Weeknight ideas"
    assert stored.food_names == ["beef"]


@pytest.mark.asyncio
async def test_other_customers_session_is_not_found(factory):
    owner = await make_customer(factory, "owner@example.com", 5)
    intruder = await make_customer(factory, "intruder@example.com", 5)
    service = factory.create_chat_session_service()
    session = await service.start_session(owner)

    with pytest.raises(SessionNotFoundError):
        await service.get_messages(intruder, session.session_id)
    with pytest.raises(SessionNotFoundError):
        await service.rename(intruder, session.session_id, "mine now")
    with pytest.raises(SessionNotFoundError):
        await service.delete(intruder, session.session_id)


@pytest.mark.asyncio
async def test_list_is_most_recent_first(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    service = factory.create_chat_session_service()
    first = await service.start_session(ctx)
    second = await service.start_session(ctx)

    await service.record_user_message(first.session_id, "bump")

    sessions = await service.list_sessions(ctx)
    assert [s.session_id for s in sessions] == [first.session_id, second.session_id]


@pytest.mark.asyncio
async def test_search_matches_title_and_terms(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    other = await make_customer(factory, "b@example.com", 5)
    service = factory.create_chat_session_service()

    mine = await service.start_session(ctx)
    await service.record_user_message(mine.session_id, "salmon with garlic")
    theirs = await service.start_session(other)
    await service.record_user_message(theirs.session_id, "salmon again")

    found = await service.search(ctx, "SALMON")
    assert [s.session_id for s in found] == [mine.session_id]
    assert await service.search(ctx, "100%") == []
    assert await service.search(ctx, "   ") == []


@pytest.mark.asyncio
async def test_deleted_session_disappears(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    service = factory.create_chat_session_service()
    session = await service.start_session(ctx)

    await service.delete(ctx, session.session_id)

    assert await service.list_sessions(ctx) == []
    with pytest.raises(SessionNotFoundError):
        await service.get_owned(ctx, session.session_id)
    with pytest.raises(SessionNotFoundError):
        await service.record_user_message(session.session_id, "still there?")


@pytest.mark.asyncio
async def test_history_skips_fallback_replies(factory):
    ctx = await make_customer(factory, "a@example.com", 5)
    service = factory.create_chat_session_service()
    session = await service.start_session(ctx)

    await service.record_user_message(session.session_id, "pasta?")
    await service.record_ai_message(session.session_id, "canned", is_fallback=True)
    await service.record_user_message(session.session_id, "pasta please")
    await service.record_ai_message(session.session_id, "Sure, carbonara.")

    history = await service.load_history(session.session_id, limit=20)
    assert [t.text for t in history] == ["pasta?", "pasta please", "Sure, carbonara."]

    recent = await service.load_history(session.session_id, limit=2)
    assert [t.text for t in recent] == ["pasta please", "Sure, carbonara."]


@pytest.mark.asyncio
async def test_unknown_context_cannot_list_anything(factory):
    assert await factory.create_chat_session_service().list_sessions(RequestContext(customer_id=12345)) == []
