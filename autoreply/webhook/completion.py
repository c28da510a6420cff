"""Chat-completion client for OpenRouter-compatible APIs.

Every failure is returned as a ``CompletionResult`` carrying an error
message; nothing raises past ``generate``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from autoreply.models import DEFAULT_AI_MODEL

if TYPE_CHECKING:
    from autoreply.models import GlobalConfig
    from autoreply.webhook.tenants import Tenant

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_REFERER = "http://localhost:3000"
DEFAULT_TITLE = "FB Auto-Reply Bot"
_MAX_TOKENS = 500
_TIMEOUT_SECONDS = 30.0

API_KEY_NOT_CONFIGURED = "API key not configured"
NO_RESPONSE_GENERATED = "No response generated"

_PERSONA = "You are a helpful customer support bot for a Facebook Page."
_KNOWLEDGE_INTRO = "Use the following knowledge base to answer questions:"
_GUIDELINES = """Guidelines:
- Be friendly and helpful
- Keep responses concise
- If you don't know something, say you'll get back to the user
- Don't make up information
- Always be polite and professional"""


@dataclass(frozen=True)
class CompletionResult:
    response: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, str]:
        if self.error is not None:
            return {"error": self.error}
        return {"response": self.response or ""}


def build_system_prompt(knowledge_context: str) -> str:
    parts = [_PERSONA]
    if knowledge_context:
        parts.append(f"{_KNOWLEDGE_INTRO}\n\n{knowledge_context}")
    parts.append(_GUIDELINES)
    return "\n\n".join(parts)


def resolve_credentials(
    tenant: Tenant | None, defaults: GlobalConfig,
) -> tuple[str, str]:
    """Return (api_key, model), preferring non-empty tenant overrides."""
    api_key = (tenant.openrouter_key if tenant else "") or defaults.openrouter_key
    model = (
        (tenant.ai_model if tenant else "")
        or defaults.default_ai_model
        or DEFAULT_AI_MODEL
    )
    return api_key, model


class CompletionClient:
    """Generates replies through a chat-completion endpoint."""

    def __init__(
        self,
        url: str = OPENROUTER_URL,
        referer: str = DEFAULT_REFERER,
        title: str = DEFAULT_TITLE,
    ) -> None:
        self._url = url
        self._referer = referer
        self._title = title

    async def generate(
        self,
        user_message: str,
        knowledge_context: str,
        tenant: Tenant | None,
        defaults: GlobalConfig,
    ) -> CompletionResult:
        api_key, model = resolve_credentials(tenant, defaults)
        if not api_key:
            return CompletionResult(error=API_KEY_NOT_CONFIGURED)

        request_body = {
            "model": model,
            "messages": [
                {"role": "system", "content": build_system_prompt(knowledge_context)},
                {"role": "user", "content": user_message},
            ],
            "max_tokens": _MAX_TOKENS,
        }
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self._referer,
            "X-Title": self._title,
        }

        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    self._url, json=request_body, headers=headers,
                    timeout=_TIMEOUT_SECONDS,
                )
        except httpx.TimeoutException:
            logger.error("Completion request timed out after %ss", _TIMEOUT_SECONDS)
            return CompletionResult(error="Completion request timed out")
        except httpx.HTTPError as exc:
            logger.error("Completion request failed: %s", exc)
            return CompletionResult(error=str(exc) or exc.__class__.__name__)

        if resp.status_code >= 400:
            message = _upstream_error_message(resp)
            logger.error("Completion API error %s: %s", resp.status_code, message)
            return CompletionResult(error=message)

        try:
            resp_json = resp.json()
        except ValueError:
            logger.error("Completion API returned a non-JSON body")
            return CompletionResult(error="Invalid response from completion API")
        return CompletionResult(response=_first_choice_text(resp_json))


def _first_choice_text(resp_json: Any) -> str:
    try:
        content = resp_json["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return NO_RESPONSE_GENERATED
    if not isinstance(content, str) or not content:
        return NO_RESPONSE_GENERATED
    return content


def _upstream_error_message(resp: httpx.Response) -> str:
    try:
        error = resp.json().get("error")
    except (ValueError, AttributeError):
        error = None
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    return f"Request failed with status code {resp.status_code}"
