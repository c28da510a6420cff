"""Messenger webhook pipeline.

Handles the subscription handshake and processes inbound page events.

Event processing stages, per entry and then per message, in payload order:
1. Resolve the owning tenant (skip unknown or disabled pages)
2. Match the message against the knowledge store
3. Generate a reply through the completion client
4. Dispatch the reply, or the fallback text if generation failed
5. Record each step in the event log
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from starlette.concurrency import run_in_threadpool

from autoreply.knowledge.matcher import search
from autoreply.models import LogEventType
from autoreply.webhook.models import (
    MessagingItem,
    PageEntry,
    PageEvent,
    VerificationResult,
    parse_inbound_event,
)

if TYPE_CHECKING:
    from autoreply.audit.event_log import EventLog
    from autoreply.models import GlobalConfig
    from autoreply.store.knowledge_store import KnowledgeStore
    from autoreply.webhook.completion import CompletionClient, CompletionResult
    from autoreply.webhook.messenger import MessengerDispatcher
    from autoreply.webhook.tenants import Tenant, TenantDirectory

logger = logging.getLogger(__name__)

SUBSCRIBE_MODE = "subscribe"
FALLBACK_REPLY = "Thanks for your message! We'll get back to you soon. 😊"


class WebhookPipeline:
    """Ties tenant resolution, knowledge lookup, completion and dispatch together."""

    def __init__(
        self,
        tenants: TenantDirectory,
        knowledge: KnowledgeStore,
        completion: CompletionClient,
        dispatcher: MessengerDispatcher,
        event_log: EventLog,
    ) -> None:
        self._tenants = tenants
        self._knowledge = knowledge
        self._completion = completion
        self._dispatcher = dispatcher
        self._event_log = event_log

    def verify(self, mode: str | None, token: str | None, challenge: str | None) -> VerificationResult:
        """Handle the subscription handshake (GET).

        Reads the page store synchronously.
        """
        token_match = self._tenants.verify_token_matches(token or "")
        self._event_log.log(
            LogEventType.VERIFICATION, {"mode": mode, "tokenMatch": token_match},
        )
        if mode == SUBSCRIBE_MODE and token_match:
            logger.info("Webhook verified")
            return VerificationResult(status_code=200, body=challenge or "")
        logger.warning("Webhook verification failed")
        return VerificationResult(status_code=403)

    async def process(self, payload: Any) -> None:
        """Process an inbound payload after it has been acknowledged.

        Never raises: the platform has already received its response.
        """
        self._event_log.log(LogEventType.RECEIVED, {"payload": payload})
        try:
            event = parse_inbound_event(payload)
            if not isinstance(event, PageEvent):
                return
            for entry in event.entries:
                await self._process_entry(entry)
        except Exception as exc:
            logger.exception("Unexpected error processing webhook payload")
            self._event_log.log(LogEventType.ERROR, {"msg": f"Processing failed: {exc}"})

    async def test_message(self, message: str, page_id: str | None = None) -> CompletionResult:
        """Run knowledge lookup and generation without dispatching."""
        tenant = await run_in_threadpool(self._tenants.get, page_id)
        defaults = await run_in_threadpool(self._tenants.defaults)
        return await self._generate(message, tenant, defaults)

    async def _process_entry(self, entry: PageEntry) -> None:
        tenant = await run_in_threadpool(self._tenants.resolve_entry, entry.id)
        if tenant is None:
            self._event_log.log(LogEventType.ERROR, {"msg": f"Page not configured: {entry.id}"})
            return
        if not tenant.enabled:
            self._event_log.log(LogEventType.SKIP, {"msg": f"Page disabled: {tenant.name}"})
            return

        defaults = await run_in_threadpool(self._tenants.defaults)
        for item in entry.messaging:
            if item.text:
                await self._reply(item, tenant, defaults)

    async def _reply(self, item: MessagingItem, tenant: Tenant, defaults: GlobalConfig) -> None:
        text = item.text or ""
        self._event_log.log(
            LogEventType.MESSAGE,
            {"page": tenant.name, "senderId": item.sender_id, "text": text},
        )

        result = await self._generate(text, tenant, defaults)
        if result.error is not None:
            await self._dispatch(item.sender_id, FALLBACK_REPLY, tenant)
            self._event_log.log(LogEventType.ERROR, {"msg": result.error})
        elif result.response is not None:
            await self._dispatch(item.sender_id, result.response, tenant)

    async def _generate(
        self, text: str, tenant: Tenant | None, defaults: GlobalConfig,
    ) -> CompletionResult:
        # Matching covers the whole shared store, not only tenant.knowledge_base.
        documents = await run_in_threadpool(self._knowledge.list_documents)
        context = search(text, documents)
        return await self._completion.generate(text, context, tenant, defaults)

    async def _dispatch(self, recipient_id: str, text: str, tenant: Tenant) -> None:
        outcome = await self._dispatcher.send(recipient_id, text, tenant.page_access_token)
        if outcome.delivered:
            self._event_log.log(LogEventType.SENT, {"senderId": recipient_id, "reply": text})
        else:
            self._event_log.log(LogEventType.ERROR, {"msg": outcome.error})
