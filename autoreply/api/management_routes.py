"""Management API endpoints for the operator dashboard.

Provides endpoints for:
- Page configuration CRUD (secrets returned masked)
- Global configuration
- Knowledge documents
- Test messages (generation without dispatch)
- The in-memory event log
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from autoreply.models import PageUpdate, Secret, TenantMode
from autoreply.store.config_store import PageNotFoundError
from autoreply.store.knowledge_store import InvalidDocumentNameError

if TYPE_CHECKING:
    from autoreply.audit.event_log import EventLog
    from autoreply.store.config_store import ConfigStore
    from autoreply.store.knowledge_store import KnowledgeStore
    from autoreply.webhook.pipeline import WebhookPipeline

logger = logging.getLogger(__name__)


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def create_management_router(
    config_store: ConfigStore,
    knowledge_store: KnowledgeStore,
    pipeline: WebhookPipeline,
    event_log: EventLog,
    mode: TenantMode = TenantMode.MULTI,
) -> APIRouter:
    """Create the management API router.

    Store handlers without a request body are plain functions so FastAPI runs
    their file access in its threadpool; the others hand store calls to it.
    """
    router = APIRouter(prefix="/api")

    # --- pages ---

    @router.get("/pages")
    def list_pages() -> JSONResponse:
        return JSONResponse([page.masked() for page in config_store.load_pages()])

    @router.post("/pages")
    async def create_page(request: Request) -> JSONResponse:
        body = await _json_body(request)
        page = await run_in_threadpool(
            config_store.create_page,
            name=body.get("name") if isinstance(body.get("name"), str) else None,
            verify_token=Secret.parse(body.get("verifyToken")).apply(""),
            page_access_token=Secret.parse(body.get("pageAccessToken")).apply(""),
            openrouter_key=Secret.parse(body.get("openrouterKey")).apply(""),
            ai_model=body.get("aiModel") if isinstance(body.get("aiModel"), str) else None,
        )
        logger.info("Created page %s (%s)", page.id, page.name)
        return JSONResponse({"success": True, "page": {"id": page.id, "name": page.name}})

    @router.put("/pages/{page_id}")
    async def update_page(page_id: str, request: Request) -> JSONResponse:
        body = await _json_body(request)
        try:
            await run_in_threadpool(config_store.update_page, page_id, PageUpdate.from_request(body))
        except PageNotFoundError:
            return JSONResponse({"error": "Page not found"}, status_code=404)
        return JSONResponse({"success": True})

    @router.delete("/pages/{page_id}")
    def delete_page(page_id: str) -> JSONResponse:
        config_store.delete_page(page_id)
        return JSONResponse({"success": True})

    # --- global config ---

    @router.get("/config")
    def get_config() -> JSONResponse:
        return JSONResponse(config_store.load_global_config().masked(mode))

    @router.post("/config")
    async def set_config(request: Request) -> JSONResponse:
        body = await _json_body(request)
        config = await run_in_threadpool(config_store.load_global_config)
        changes: dict[str, object] = {
            "openrouter_key": Secret.parse(body.get("openrouterKey")).apply(config.openrouter_key),
        }
        default_model = body.get("defaultAiModel")
        if isinstance(default_model, str) and default_model:
            changes["default_ai_model"] = default_model
        if mode is TenantMode.SINGLE:
            changes["verify_token"] = Secret.parse(body.get("verifyToken")).apply(config.verify_token)
            changes["page_access_token"] = Secret.parse(
                body.get("pageAccessToken"),
            ).apply(config.page_access_token)
        await run_in_threadpool(config_store.save_global_config, config.model_copy(update=changes))
        return JSONResponse({"success": True})

    # --- knowledge ---

    @router.get("/knowledge")
    def list_knowledge() -> JSONResponse:
        return JSONResponse([doc.model_dump() for doc in knowledge_store.list_documents()])

    @router.post("/knowledge")
    async def put_knowledge(request: Request) -> JSONResponse:
        body = await _json_body(request)
        name = body.get("name")
        if not isinstance(name, str) or not name:
            return JSONResponse({"error": "Name required"}, status_code=400)
        content = body.get("content")
        try:
            await run_in_threadpool(knowledge_store.put, name, content if isinstance(content, str) else "")
        except InvalidDocumentNameError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        return JSONResponse({"success": True})

    @router.delete("/knowledge/{name}")
    def delete_knowledge(name: str) -> JSONResponse:
        try:
            knowledge_store.delete(name)
        except InvalidDocumentNameError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        return JSONResponse({"success": True})

    # --- test message ---

    @router.post("/test")
    async def test_message(request: Request) -> JSONResponse:
        body = await _json_body(request)
        message = body.get("message")
        if not isinstance(message, str) or not message:
            return JSONResponse({"error": "Message required"}, status_code=400)
        page_id = body.get("pageId")
        result = await pipeline.test_message(
            message, page_id if isinstance(page_id, str) else None,
        )
        return JSONResponse(result.to_dict())

    # --- logs ---

    @router.get("/logs")
    async def list_logs() -> JSONResponse:
        return JSONResponse([entry.model_dump(mode="json") for entry in event_log.entries()])

    @router.delete("/logs")
    async def clear_logs() -> JSONResponse:
        event_log.clear()
        return JSONResponse({"success": True})

    return router
