"""Messenger Send API dispatcher and webhook signature check.

Delivers replies on behalf of a page. Delivery outcomes are returned as
``DispatchResult`` values for the caller to log; nothing raises past
``send``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass

import httpx

from autoreply.models import is_masked

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com/v18.0"
PLACEHOLDER_ACCESS_TOKEN = "YOUR_PAGE_ACCESS_TOKEN"


@dataclass(frozen=True)
class DispatchResult:
    delivered: bool
    error: str | None = None


def verify_signature(app_secret: str, headers: dict[str, str], body: bytes) -> bool:
    """Verify the ``X-Hub-Signature-256`` HMAC-SHA256 of a webhook body.

    Uses constant-time comparison via hmac.compare_digest.
    """
    signature = headers.get("x-hub-signature-256", "")
    if not signature.startswith("sha256="):
        return False

    expected = hmac.new(app_secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature[7:].encode(), expected.encode())


def credential_problem(credential: str | None) -> str | None:
    """Explain why a page access token cannot be used, or None if it can."""
    if not credential or credential == PLACEHOLDER_ACCESS_TOKEN:
        return "PAGE_ACCESS_TOKEN not configured"
    if is_masked(credential):
        return "PAGE_ACCESS_TOKEN is a masked value"
    return None


class MessengerDispatcher:
    """Sends text replies through the Messenger Send API."""

    def __init__(self, api_base: str = GRAPH_API_BASE) -> None:
        self._url = f"{api_base.rstrip('/')}/me/messages"

    async def send(
        self, recipient_id: str, text: str, credential: str | None,
    ) -> DispatchResult:
        problem = credential_problem(credential)
        if problem is not None:
            return DispatchResult(delivered=False, error=problem)

        payload = {
            "recipient": {"id": recipient_id},
            "message": {"text": text},
        }

        try:
            async with httpx.AsyncClient(verify=True) as client:
                resp = await client.post(
                    self._url,
                    json=payload,
                    params={"access_token": credential},
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.error("Send API request failed: %s", exc)
            return DispatchResult(
                delivered=False, error=str(exc) or exc.__class__.__name__,
            )

        if resp.status_code >= 400:
            message = _send_api_error(resp)
            logger.error("Send API error %s: %s", resp.status_code, message)
            return DispatchResult(delivered=False, error=message)
        return DispatchResult(delivered=True)


def _send_api_error(resp: httpx.Response) -> str:
    try:
        error = resp.json().get("error")
    except (ValueError, AttributeError):
        error = None
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return f"Request failed with status code {resp.status_code}"
