"""
LLM Integration
Language backend for Sage: free-text chat and structured recipe suggestions
via the OpenRouter API
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import httpx

from config import (
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    LLM_MODEL,
    LLM_TEMPERATURE,
    LLM_SUGGEST_TEMPERATURE,
    LLM_MAX_TOKENS,
    LLM_TIMEOUT,
    LLM_MAX_RETRIES,
    PROMPT_MAX_PRODUCTS,
    PROMPT_MAX_RECIPES,
)
from sage.formatting import strip_code_fences

log = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM-related errors"""
    pass


# The conversation core only cares that the backend failed
BackendError = LLMError


class RateLimitError(LLMError):
    """Raised when API rate limit is hit"""
    pass


class APIError(LLMError):
    """Raised for general API errors"""
    pass


@dataclass
class SuggestRequest:
    """Inputs for a structured recipe suggestion call"""
    message: str
    context: list[dict] = field(default_factory=list)
    recipe_catalog: list = field(default_factory=list)
    product_list: list = field(default_factory=list)
    avoid_names: list[str] = field(default_factory=list)
    grounded_mode: bool = False
    requested_count: int = 3


@dataclass
class SuggestResponse:
    reply: str = ""
    reasoning: str = ""
    recipes: list[dict] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "SuggestResponse":
        recipes = data.get("recipes") or []
        return cls(
            reply=str(data.get("reply") or ""),
            reasoning=str(data.get("reasoning") or ""),
            recipes=[r for r in recipes if isinstance(r, dict)],
        )


class LanguageBackend(Protocol):
    async def chat(
        self,
        message: str,
        history: list[dict],
        recipe_summaries: list[str],
        product_summaries: list[str],
    ) -> str:
        ...

    async def suggest(self, request: SuggestRequest) -> SuggestResponse:
        ...


def _retry_after(response: httpx.Response, default: int) -> int:
    try:
        return max(0, int(response.headers.get("Retry-After", default)))
    except ValueError:
        return default


def _error_detail(response: httpx.Response) -> str:
    """Provider error message; OpenRouter sends {"error": {"message": ...}}, others a bare string"""
    try:
        body = response.json()
    except ValueError:
        return response.text
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or response.text)
    if err:
        return str(err)
    return response.text


async def call_llm_async(
    messages: list[dict],
    model: str = LLM_MODEL,
    temperature: float = LLM_TEMPERATURE,
    max_tokens: int = LLM_MAX_TOKENS,
    timeout: int = LLM_TIMEOUT
) -> str:
    """Call configured LLM via OpenRouter API"""
    if not OPENROUTER_API_KEY:
        raise APIError(
            "OpenRouter API key not found. "
            "Please set OPENROUTER_API_KEY in your .env file."
        )

    headers = {
        "Authorization": f"Bearer {OPENROUTER_API_KEY}",
        "Content-Type": "application/json",
        "HTTP-Referer": "https://sage-grocery-assistant.app",
        "X-Title": "Sage Grocery Assistant"
    }

    payload = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens
    }

    last_error = None

    for attempt in range(LLM_MAX_RETRIES):
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(
                    OPENROUTER_BASE_URL,
                    headers=headers,
                    json=payload
                )

                if response.status_code == 429:
                    retry_after = _retry_after(response, 2 ** attempt)
                    if attempt < LLM_MAX_RETRIES - 1:
                        log.warning("Rate limited, retrying in %ss", retry_after)
                        await asyncio.sleep(retry_after)
                        continue
                    raise RateLimitError(
                        f"Rate limited. Please try again in {retry_after} seconds."
                    )

                if response.status_code != 200:
                    raise APIError(f"API error ({response.status_code}): {_error_detail(response)}")

                try:
                    data = response.json()
                except ValueError:
                    raise APIError("Invalid API response: body is not JSON")

                choices = data.get("choices") if isinstance(data, dict) else None
                if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
                    raise APIError("Invalid API response: no choices returned")

                message = choices[0].get("message")
                content = message.get("content") if isinstance(message, dict) else None

                if not content or not isinstance(content, str):
                    raise APIError("Empty response from API")

                return content

        except httpx.TimeoutException:
            last_error = APIError(f"Request timed out after {timeout} seconds")
            if attempt < LLM_MAX_RETRIES - 1:
                await asyncio.sleep(2 ** attempt)
                continue

        except httpx.RequestError as e:
            last_error = APIError(f"Network error: {str(e)}")
            if attempt < LLM_MAX_RETRIES - 1:
                await asyncio.sleep(2 ** attempt)
                continue

    if last_error:
        raise last_error
    raise APIError("Failed to get response after multiple attempts")


# =============================================================================
# PROMPTS
# =============================================================================

CHAT_SYSTEM_PROMPT = """You are Sage, a friendly grocery and cooking assistant for a small grocery store.

You help shoppers decide what to cook, plan meals around a budget or a busy schedule,
use up what is already in their pantry, and eat a little healthier.

Style:
- Warm, concise, practical. Two short paragraphs at most.
- Never paste JSON, code blocks or raw data into your reply.
- When you recommend dishes, name them in plain prose. The app shows recipe cards separately.
- Prefer ingredients the store actually stocks (listed below when available).
"""

SUGGEST_SYSTEM_PROMPT = """You are Sage's recipe engine. Reply with ONE JSON object and nothing else:

{
  "reply": "<one or two friendly sentences introducing the recipes>",
  "reasoning": "<one short sentence on why these fit>",
  "recipes": [
    {"name": "<recipe name>", "ingredients": ["<ingredient>", ...], "steps": ["<step>", ...], "mealType": "<breakfast|lunch|dinner|snack|dessert>"}
  ]
}

Rules:
- Return exactly the number of recipes asked for (default 3).
- Keep ingredient names short and generic (e.g. "eggs", "spinach", "olive oil").
- Do not repeat any recipe listed under AVOID.
"""

GROUNDED_RULE = (
    "GROUNDED MODE: every ingredient MUST be one of the store products listed below. "
    "Recipes using anything else will be discarded."
)


def _history_messages(history: list[dict]) -> list[dict]:
    messages = []
    for msg in history:
        role = "user" if msg.get("from") == "user" else "assistant"
        text = msg.get("text") or ""
        if text:
            messages.append({"role": role, "content": text})
    return messages


def build_chat_prompt(
    message: str,
    history: list[dict],
    recipe_summaries: list[str],
    product_summaries: list[str],
) -> list[dict]:
    """Build the prompt for a conversational turn"""
    system = CHAT_SYSTEM_PROMPT
    if recipe_summaries:
        system += "\n[CATALOG RECIPES]\n" + "\n".join(recipe_summaries[:PROMPT_MAX_RECIPES])
    if product_summaries:
        system += "\n[STORE PRODUCTS]\n" + "\n".join(product_summaries[:PROMPT_MAX_PRODUCTS])

    messages = [{"role": "system", "content": system}]
    messages.extend(_history_messages(history))
    messages.append({"role": "user", "content": message})
    return messages


def build_suggest_prompt(request: SuggestRequest) -> list[dict]:
    """Build the prompt for a structured suggestion call"""
    system = SUGGEST_SYSTEM_PROMPT
    if request.grounded_mode:
        system += "\n" + GROUNDED_RULE

    sections = [request.message]
    if request.requested_count and request.requested_count != 3:
        noun = "recipe" if request.requested_count == 1 else "recipes"
        sections.append(f"Generate exactly {request.requested_count} {noun}.")
    if request.avoid_names:
        sections.append("AVOID: " + ", ".join(request.avoid_names))

    recipes = [
        r.format_for_prompt() if hasattr(r, "format_for_prompt") else str(r)
        for r in request.recipe_catalog[:PROMPT_MAX_RECIPES]
    ]
    if recipes:
        sections.append("[CATALOG RECIPES FOR INSPIRATION]\n" + "\n".join(recipes))
    products = [
        p.format_for_prompt() if hasattr(p, "format_for_prompt") else str(p)
        for p in request.product_list[:PROMPT_MAX_PRODUCTS]
    ]
    if products:
        sections.append("[STORE PRODUCTS]\n" + "\n".join(products))

    messages = [{"role": "system", "content": system}]
    messages.extend(_history_messages(request.context[-6:]))
    messages.append({"role": "user", "content": "\n\n".join(sections)})
    return messages


def parse_suggest_reply(raw: str) -> SuggestResponse:
    """Parse a structured reply, tolerating code fences and surrounding prose"""
    text = strip_code_fences(raw)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise APIError("Structured reply contained no JSON object")
    try:
        data = json.loads(text[start:end + 1])
    except ValueError as e:
        raise APIError(f"Structured reply was not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise APIError("Structured reply was not a JSON object")
    return SuggestResponse.from_dict(data)


class OpenRouterBackend:
    """LanguageBackend backed by OpenRouter chat completions"""

    def __init__(self, model: str = LLM_MODEL):
        self.model = model

    async def chat(
        self,
        message: str,
        history: list[dict],
        recipe_summaries: list[str],
        product_summaries: list[str],
    ) -> str:
        messages = build_chat_prompt(message, history, recipe_summaries, product_summaries)
        return await call_llm_async(messages, model=self.model)

    async def suggest(self, request: SuggestRequest) -> SuggestResponse:
        messages = build_suggest_prompt(request)
        raw = await call_llm_async(messages, model=self.model, temperature=LLM_SUGGEST_TEMPERATURE)
        return parse_suggest_reply(raw)


async def check_llm_health(backend: Optional[LanguageBackend] = None) -> dict:
    """Probe the backend with a tiny chat call"""
    backend = backend or OpenRouterBackend()
    try:
        reply = await backend.chat("Reply with the single word: ok", [], [], [])
    except LLMError as e:
        return {"ok": False, "model": LLM_MODEL, "error": str(e)}
    return {"ok": True, "model": LLM_MODEL, "sample": reply[:40]}
