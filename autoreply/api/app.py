"""FastAPI application: Messenger webhook, health check and management API."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path

from fastapi import BackgroundTasks, FastAPI, Request, Response
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse

from autoreply.api.auth_middleware import AuthMiddleware
from autoreply.api.management_routes import create_management_router
from autoreply.audit.event_log import DEFAULT_CAPACITY, EventLog
from autoreply.models import LogEventType, TenantMode
from autoreply.store.config_store import ConfigStore
from autoreply.store.knowledge_store import KnowledgeStore
from autoreply.webhook.completion import CompletionClient
from autoreply.webhook.messenger import MessengerDispatcher, verify_signature
from autoreply.webhook.pipeline import WebhookPipeline
from autoreply.webhook.tenants import create_tenant_directory

KNOWLEDGE_SUBDIR = "knowledge"

# Reference point for /health uptime, taken when the process imports the app.
PROCESS_STARTED_AT = time.monotonic()


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    data_dir = os.environ.get("DATA_DIR", "data")
    mode = TenantMode(os.environ.get("TENANT_MODE", TenantMode.MULTI.value))
    capacity = int(os.environ.get("EVENT_LOG_CAPACITY", str(DEFAULT_CAPACITY)))
    return create_app(
        data_dir,
        mode=mode,
        admin_token=os.environ.get("ADMIN_TOKEN") or None,
        app_secret=os.environ.get("APP_SECRET") or None,
        static_dir=os.environ.get("STATIC_DIR", "public"),
        event_log=EventLog(capacity),
    )


def build_pipeline(
    data_dir: str | Path,
    event_log: EventLog,
    mode: TenantMode = TenantMode.MULTI,
    completion: CompletionClient | None = None,
    dispatcher: MessengerDispatcher | None = None,
) -> tuple[ConfigStore, KnowledgeStore, WebhookPipeline]:
    """Wire the stores and the webhook pipeline for a data directory."""
    config_store = ConfigStore(data_dir)
    knowledge_store = KnowledgeStore(Path(data_dir) / KNOWLEDGE_SUBDIR)
    pipeline = WebhookPipeline(
        tenants=create_tenant_directory(mode, config_store),
        knowledge=knowledge_store,
        completion=completion if completion is not None else CompletionClient(),
        dispatcher=dispatcher if dispatcher is not None else MessengerDispatcher(),
        event_log=event_log,
    )
    return config_store, knowledge_store, pipeline


def create_app(
    data_dir: str | Path,
    mode: TenantMode = TenantMode.MULTI,
    admin_token: str | None = None,
    app_secret: str | None = None,
    static_dir: str | Path = "public",
    event_log: EventLog | None = None,
    completion: CompletionClient | None = None,
    dispatcher: MessengerDispatcher | None = None,
) -> FastAPI:
    """Create the bot FastAPI app."""
    app = FastAPI(docs_url=None, redoc_url=None)
    if event_log is None:
        event_log = EventLog()
    config_store, knowledge_store, pipeline = build_pipeline(
        data_dir, event_log, mode, completion, dispatcher,
    )
    app.state.event_log = event_log
    app.state.pipeline = pipeline

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {"status": "ok", "uptime": time.monotonic() - PROCESS_STARTED_AT}

    @app.get("/dashboard")
    async def dashboard() -> Response:
        page = Path(static_dir) / "dashboard.html"
        if not page.is_file():
            return JSONResponse({"error": "Dashboard not installed"}, status_code=404)
        return FileResponse(page)

    @app.get("/webhook")
    def verify_webhook(request: Request) -> Response:
        params = request.query_params
        result = pipeline.verify(
            params.get("hub.mode"),
            params.get("hub.verify_token"),
            params.get("hub.challenge"),
        )
        if not result.accepted:
            return Response(status_code=403)
        return PlainTextResponse(result.body)

    @app.post("/webhook")
    async def receive_webhook(request: Request, background_tasks: BackgroundTasks) -> Response:
        # Always answers 200 "OK"; the pipeline runs after the response is sent.
        body = await request.body()
        if app_secret and not verify_signature(app_secret, dict(request.headers), body):
            event_log.log(LogEventType.ERROR, {"msg": "Invalid webhook signature"})
            return PlainTextResponse("OK")
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            event_log.log(LogEventType.ERROR, {"msg": "Webhook body is not valid JSON"})
            return PlainTextResponse("OK")
        background_tasks.add_task(pipeline.process, payload)
        return PlainTextResponse("OK")

    app.include_router(create_management_router(
        config_store, knowledge_store, pipeline, event_log, mode,
    ))

    if admin_token:
        app.add_middleware(AuthMiddleware, token=admin_token, event_log=event_log)

    return app
