"""
infrastructure.llm.gemini_client - Gemini generateContent client with retry and fallback.

Implements CompletionClientPort over the Gemini REST API. Uses requests
via run_in_executor for async compat, like the other HTTP adapters.

Failure handling:
  1. 429, 5xx, timeouts and connection errors are transient: the same model
     is retried with exponential backoff (base * 2**n) up to max_attempts.
  2. When the primary model is exhausted on a transient error, exactly one
     alternate model is tried with the same retry loop.
  3. Any other 4xx (bad request, bad key) is permanent and raised at once.

Every ProviderError leaving this module carries fallback_text, the canned
reply matched on the user's message, so the caller never needs to build it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import requests

from domain.exceptions import ProviderError, ProviderPermanentError, ProviderTransientError
from domain.fallback import canned_response
from domain.models import CompletionResult, HistoryTurn, UserProfile
from infrastructure.llm.prompt import build_chat_prompt, build_recipe_prompt

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

CHAT_GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 1000,
}

RECIPE_GENERATION_CONFIG = {
    "temperature": 0.8,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 1500,
}


class GeminiCompletionClient:
    """Call Gemini generateContent for chat replies and full recipes.

    Args:
        api_key: Gemini API key (sent as x-goog-api-key, never in the URL).
        model: Primary model id, e.g. "gemini-1.5-flash".
        alt_models: Alternates; only the first one is ever used.
        session: Object with a requests-compatible post(); defaults to
            a requests.Session. Tests pass a fake here.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        alt_models: tuple[str, ...] = (),
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 20.0,
        max_attempts: int = 3,
        backoff_base: float = 0.2,
        history_limit: int = 20,
        session: Any = None,
    ):
        self._api_key = api_key
        self._model = model
        self._alt_model = next((m for m in alt_models if m and m != model), None)
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._backoff_base = max(0.0, backoff_base)
        self._history_limit = history_limit
        self._session = session or requests.Session()

    async def complete(
        self,
        profile: Optional[UserProfile],
        history: list[HistoryTurn],
        user_message: str,
    ) -> CompletionResult:
        prompt = build_chat_prompt(
            profile, history, user_message, max_history=self._history_limit,
        )
        return await self._generate(prompt, CHAT_GENERATION_CONFIG, user_message)

    async def complete_recipe(
        self,
        ingredients: list[str],
        preferences: str = "",
        skill_level: str = "",
        cooking_time: str = "",
        allergies: Optional[list[str]] = None,
    ) -> CompletionResult:
        prompt = build_recipe_prompt(
            ingredients, preferences, skill_level, cooking_time, allergies,
        )
        return await self._generate(
            prompt, RECIPE_GENERATION_CONFIG, " ".join(ingredients),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _generate(
        self, prompt: str, generation_config: dict, fallback_hint: str,
    ) -> CompletionResult:
        models = [self._model] + ([self._alt_model] if self._alt_model else [])
        last_error: Optional[ProviderError] = None

        for model in models:
            try:
                return await self._generate_with_retries(model, prompt, generation_config)
            except ProviderTransientError as e:
                last_error = e
                logger.warning(
                    "Gemini model %s exhausted after %d attempt(s): %s",
                    model, self._max_attempts, e,
                )
            except ProviderPermanentError as e:
                logger.error("Gemini model %s rejected the request: %s", model, e)
                e.fallback_text = canned_response(fallback_hint)
                raise

        last_error.fallback_text = canned_response(fallback_hint)
        raise last_error

    async def _generate_with_retries(
        self, model: str, prompt: str, generation_config: dict,
    ) -> CompletionResult:
        loop = asyncio.get_event_loop()
        attempt = 1
        while True:
            try:
                return await loop.run_in_executor(
                    None, self._call_api, model, prompt, generation_config,
                )
            except ProviderTransientError as e:
                if attempt >= self._max_attempts:
                    raise
                delay = self._backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    "Gemini %s attempt %d/%d failed (%s), retrying in %.2fs",
                    model, attempt, self._max_attempts, e, delay,
                )
                await asyncio.sleep(delay)
                attempt += 1

    def _call_api(
        self, model: str, prompt: str, generation_config: dict,
    ) -> CompletionResult:
        """Synchronous generateContent call (runs in thread pool)."""
        url = f"{self._base_url}/models/{model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        try:
            response = self._session.post(
                url,
                json=body,
                headers={
                    "Content-Type": "application/json",
                    "x-goog-api-key": self._api_key,
                },
                timeout=self._timeout,
            )
        except requests.exceptions.Timeout:
            raise ProviderTransientError(f"Gemini timed out after {self._timeout}s")
        except requests.exceptions.ConnectionError as e:
            raise ProviderTransientError(f"Gemini unreachable: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ProviderPermanentError(f"Gemini request could not be sent: {e}") from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise ProviderTransientError(
                f"Gemini returned HTTP {status}: {_error_message(response)}",
                status_code=status,
            )
        if status >= 400:
            raise ProviderPermanentError(
                f"Gemini returned HTTP {status}: {_error_message(response)}",
                status_code=status,
            )

        try:
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderPermanentError(
                f"Gemini response had no candidate text: {e!r}", status_code=status,
            ) from e

        tokens = (data.get("usageMetadata") or {}).get("totalTokenCount") or 0
        logger.info("Gemini %s answered (%d tokens)", model, tokens)
        return CompletionResult(text=text, tokens_used=int(tokens), model=model)


def _error_message(response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return (getattr(response, "text", "") or "")[:200]


class UnconfiguredCompletionClient:
    """Stand-in used when no Gemini API key is configured.

    Every call fails permanently with the canned fallback attached, so the
    chat path refunds the credit and still answers the user.
    """

    async def complete(
        self,
        profile: Optional[UserProfile],
        history: list[HistoryTurn],
        user_message: str,
    ) -> CompletionResult:
        return self._fail(user_message)

    async def complete_recipe(
        self,
        ingredients: list[str],
        preferences: str = "",
        skill_level: str = "",
        cooking_time: str = "",
        allergies: Optional[list[str]] = None,
    ) -> CompletionResult:
        return self._fail(" ".join(ingredients))

    @staticmethod
    def _fail(hint: str) -> CompletionResult:
        logger.error("Gemini API key not configured")
        raise ProviderPermanentError(
            "Gemini API key not configured",
            fallback_text=canned_response(hint),
        )
