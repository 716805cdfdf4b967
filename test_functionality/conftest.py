"""
Shared fixtures: a throwaway SQLite file per test, Settings built in code,
and fakes standing in for every network dependency.
"""
import sys
import os
from typing import Optional

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

import pytest
import pytest_asyncio

from infrastructure.config import Settings
from factory import ServiceFactory
from domain.entities import Customer
from domain.models import CompletionResult, PricingTable
from application.context import RequestContext


STRIPE_PRICES = PricingTable(currency="usd", prices={20: 499, 60: 1299, 150: 2499})
PHONEPE_PRICES = PricingTable(currency="inr", prices={20: 9900, 60: 24900, 150: 49900})


class FakeCompletionClient:
    """Scripted stand-in for the Gemini client.

    Each call pops the next item from *script*: a string is answered as
    model text, an exception instance is raised.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.calls: list[dict] = []

    def _next(self) -> CompletionResult:
        item = self.script.pop(0) if self.script else "Here is a recipe."
        if isinstance(item, Exception):
            raise item
        return CompletionResult(text=item, tokens_used=42, model="fake-model")

    async def complete(self, profile, history, user_message):
        self.calls.append({"profile": profile, "history": list(history), "message": user_message})
        return self._next()

    async def complete_recipe(
        self, ingredients, preferences="", skill_level="", cooking_time="", allergies=None,
    ):
        self.calls.append({
            "ingredients": list(ingredients),
            "skill_level": skill_level,
            "allergies": allergies,
        })
        return self._next()


class FakeResponse:
    """Minimal requests.Response look-alike."""

    def __init__(self, status_code: int = 200, payload: Optional[dict] = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeHTTPSession:
    """requests.Session look-alike returning queued responses.

    A queued exception instance is raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[dict] = []

    def _respond(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0) if self.responses else FakeResponse(200, {})
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url, **kwargs):
        return self._respond("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._respond("GET", url, **kwargs)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        db_path=str(tmp_path / "test.db"),
        jwt_secret="test-secret",
        welcome_credits=5,
        base_url="https://app.example.com",
        public_api_url="https://api.example.com",
        chat_history_messages=20,
    )


@pytest.fixture
def completion_client():
    return FakeCompletionClient()


@pytest_asyncio.fixture
async def factory(settings, completion_client):
    f = ServiceFactory(settings, completion_client=completion_client, gateways=[])
    await f.initialize()
    return f


async def make_customer(factory: ServiceFactory, email: str, credits: int, **fields) -> RequestContext:
    """Insert a customer directly and return a context acting as them."""
    customer_id = await factory.create_customer_repository().save(
        Customer(email=email, credits=credits, **fields),
    )
    return RequestContext(customer_id=customer_id, email=email)
