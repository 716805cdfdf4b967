"""
Gemini client: request shape, retry on transient errors, alternate model,
permanent errors, and the fallback text attached to every failure.
"""
import pytest
import requests

from domain.entities import Sender
from domain.exceptions import ProviderPermanentError, ProviderTransientError
from domain.fallback import canned_response
from domain.models import HistoryTurn, UserProfile
from infrastructure.llm.gemini_client import (
    CHAT_GENERATION_CONFIG,
    RECIPE_GENERATION_CONFIG,
    GeminiCompletionClient,
    UnconfiguredCompletionClient,
)

from conftest import FakeHTTPSession, FakeResponse


def _ok(text="Try a chicken curry!", tokens=17):
    return FakeResponse(200, {
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {"totalTokenCount": tokens},
    })


def _error(status, message="nope"):
    return FakeResponse(status, {"error": {"message": message}})


def _client(session, **kwargs):
    return GeminiCompletionClient(
        api_key="test-key",
        model="gemini-1.5-flash",
        alt_models=("gemini-1.5-pro",),
        base_url="https://gemini.test/v1beta",
        backoff_base=0,
        session=session,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_successful_completion_request_shape():
    session = FakeHTTPSession(_ok())
    client = _client(session)
    profile = UserProfile(skill_level="beginner", allergies=["peanuts"])
    history = [HistoryTurn(Sender.USER, "hi"), HistoryTurn(Sender.AI, "hello!")]

    result = await client.complete(profile, history, "chicken ideas?")

    assert result.text == "Try a chicken curry!"
    assert result.tokens_used == 17
    assert result.model == "gemini-1.5-flash"

    sent = session.requests[0]
    assert sent["url"] == "https://gemini.test/v1beta/models/gemini-1.5-flash:generateContent"
    assert sent["headers"]["x-goog-api-key"] == "test-key"
    assert "key=" not in sent["url"]
    assert sent["json"]["generationConfig"] == CHAT_GENERATION_CONFIG
    prompt = sent["json"]["contents"][0]["parts"][0]["text"]
    assert "peanuts" in prompt
    assert "User: hi" in prompt
    assert "Assistant: hello!" in prompt
    assert prompt.rstrip().endswith("Assistant:")


@pytest.mark.asyncio
async def test_retries_rate_limit_on_same_model():
    session = FakeHTTPSession(_error(429), _error(429), _ok())
    result = await _client(session).complete(None, [], "hi")

    assert result.model == "gemini-1.5-flash"
    assert len(session.requests) == 3
    assert all("gemini-1.5-flash" in r["url"] for r in session.requests)


@pytest.mark.asyncio
async def test_switches_to_alternate_model_after_exhausting_primary():
    session = FakeHTTPSession(_error(503), _error(503), _error(503), _ok("from pro"))
    result = await _client(session).complete(None, [], "hi")

    assert result.text == "from pro"
    assert result.model == "gemini-1.5-pro"
    assert len(session.requests) == 4
    assert "gemini-1.5-pro" in session.requests[-1]["url"]


@pytest.mark.asyncio
async def test_gives_up_after_alternate_model():
    session = FakeHTTPSession(*[_error(429)] * 6)
    with pytest.raises(ProviderTransientError) as exc_info:
        await _client(session).complete(None, [], "pasta tonight")

    assert len(session.requests) == 6
    assert exc_info.value.rate_limited is True
    assert exc_info.value.fallback_text == canned_response("pasta tonight")


@pytest.mark.asyncio
async def test_permanent_error_is_not_retried():
    session = FakeHTTPSession(_error(400, "API key not valid"))
    with pytest.raises(ProviderPermanentError) as exc_info:
        await _client(session).complete(None, [], "something sweet")

    assert len(session.requests) == 1
    assert exc_info.value.status_code == 400
    assert exc_info.value.fallback_text == canned_response("something sweet")


@pytest.mark.asyncio
async def test_timeout_is_transient():
    session = FakeHTTPSession(requests.exceptions.Timeout(), _ok())
    result = await _client(session).complete(None, [], "hi")
    assert result.text == "Try a chicken curry!"
    assert len(session.requests) == 2


@pytest.mark.asyncio
async def test_response_without_candidates_is_permanent():
    session = FakeHTTPSession(FakeResponse(200, {"candidates": []}))
    with pytest.raises(ProviderPermanentError):
        await _client(session).complete(None, [], "hi")
    assert len(session.requests) == 1


@pytest.mark.asyncio
async def test_no_alternate_when_same_as_primary():
    session = FakeHTTPSession(*[_error(500)] * 3)
    client = GeminiCompletionClient(
        api_key="k", model="m1", alt_models=("m1",), backoff_base=0, session=session,
    )
    with pytest.raises(ProviderTransientError):
        await client.complete(None, [], "hi")
    assert len(session.requests) == 3


@pytest.mark.asyncio
async def test_recipe_uses_recipe_config_and_allergies():
    session = FakeHTTPSession(_ok("Ingredients: ..."))
    await _client(session).complete_recipe(
        ["rice", "egg"], cooking_time="20 minutes", allergies=["shellfish"],
    )
    body = session.requests[0]["json"]
    assert body["generationConfig"] == RECIPE_GENERATION_CONFIG
    prompt = body["contents"][0]["parts"][0]["text"]
    assert "rice, egg" in prompt
    assert "shellfish" in prompt


@pytest.mark.asyncio
async def test_unconfigured_client_always_fails_with_fallback():
    client = UnconfiguredCompletionClient()
    with pytest.raises(ProviderPermanentError) as exc_info:
        await client.complete(None, [], "quick lunch")
    assert exc_info.value.fallback_text == canned_response("quick lunch")
