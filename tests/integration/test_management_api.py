"""Integration tests for the management API."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from autoreply.api.app import create_app
from autoreply.audit.event_log import EventLog
from autoreply.models import LogEventType, TenantMode
from autoreply.store.config_store import ConfigStore
from autoreply.webhook.completion import CompletionResult
from tests.conftest import make_global_config, make_page

ADMIN_TOKEN = "admin-token-123"


def _client(app: FastAPI, **kwargs: Any) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", **kwargs)


@pytest.fixture
def store(data_dir: Path) -> ConfigStore:
    store = ConfigStore(data_dir)
    store.save_pages([make_page(verify_token="VERIFY-ABCD", openrouter_key="sk-page-WXYZ")])
    store.save_global_config(make_global_config())
    return store


@pytest.fixture
def app(
    data_dir: Path, store: ConfigStore, mock_completion: MagicMock, mock_dispatcher: MagicMock,
) -> FastAPI:
    return create_app(
        data_dir, completion=mock_completion, dispatcher=mock_dispatcher, event_log=EventLog(),
    )


class TestPages:
    @pytest.mark.asyncio
    async def test_list_masks_secrets(self, app: FastAPI) -> None:
        async with _client(app) as client:
            pages = (await client.get("/api/pages")).json()
        assert pages[0]["verifyToken"] == "***ABCD"
        assert pages[0]["pageAccessToken"] == "***1234"
        assert pages[0]["openrouterKey"] == "***WXYZ"
        assert pages[0]["name"] == "Test Page"

    @pytest.mark.asyncio
    async def test_create_returns_id_and_name(self, app: FastAPI, store: ConfigStore) -> None:
        async with _client(app) as client:
            resp = await client.post("/api/pages", json={"name": "Bakery", "pageAccessToken": "EAAB-bakery"})
        body = resp.json()
        assert body["success"] is True
        assert body["page"]["name"] == "Bakery"
        created = store.get_page(body["page"]["id"])
        assert created.page_access_token == "EAAB-bakery"
        assert created.verify_token.startswith("VERIFY_TOKEN_")

    @pytest.mark.asyncio
    async def test_create_with_defaults(self, app: FastAPI, store: ConfigStore) -> None:
        async with _client(app) as client:
            body = (await client.post("/api/pages", json={})).json()
        assert body["page"]["name"] == "New Page 2"

    @pytest.mark.asyncio
    async def test_update_with_masked_values_keeps_secrets(self, app: FastAPI, store: ConfigStore) -> None:
        async with _client(app) as client:
            masked = (await client.get("/api/pages")).json()[0]
            masked["name"] = "Renamed"
            resp = await client.put("/api/pages/page_1", json=masked)
        assert resp.json() == {"success": True}
        page = store.get_page("page_1")
        assert page.name == "Renamed"
        assert page.verify_token == "VERIFY-ABCD"
        assert page.page_access_token == "EAAB-page-token-1234"
        assert page.openrouter_key == "sk-page-WXYZ"

    @pytest.mark.asyncio
    async def test_update_replaces_literal_secret(self, app: FastAPI, store: ConfigStore) -> None:
        async with _client(app) as client:
            await client.put("/api/pages/page_1", json={"openrouterKey": "sk-new", "enabled": False})
        page = store.get_page("page_1")
        assert page.openrouter_key == "sk-new"
        assert page.enabled is False

    @pytest.mark.asyncio
    async def test_update_can_clear_knowledge_base(self, app: FastAPI, store: ConfigStore) -> None:
        async with _client(app) as client:
            await client.put("/api/pages/page_1", json={"knowledgeBase": ["faq"]})
            assert store.get_page("page_1").knowledge_base == ["faq"]
            await client.put("/api/pages/page_1", json={"knowledgeBase": []})
        assert store.get_page("page_1").knowledge_base == []

    @pytest.mark.asyncio
    async def test_update_unknown_page_404(self, app: FastAPI) -> None:
        async with _client(app) as client:
            resp = await client.put("/api/pages/nope", json={"name": "x"})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Page not found"}

    @pytest.mark.asyncio
    async def test_delete(self, app: FastAPI, store: ConfigStore) -> None:
        async with _client(app) as client:
            resp = await client.delete("/api/pages/page_1")
        assert resp.json() == {"success": True}
        assert store.load_pages() == []


class TestGlobalConfig:
    @pytest.mark.asyncio
    async def test_get_masks_key(self, app: FastAPI) -> None:
        async with _client(app) as client:
            body = (await client.get("/api/config")).json()
        assert body == {"defaultAiModel": "openai/gpt-5.2", "openrouterKey": "***abcd"}

    @pytest.mark.asyncio
    async def test_set_ignores_masked_key(self, app: FastAPI, store: ConfigStore) -> None:
        async with _client(app) as client:
            await client.post("/api/config", json={"defaultAiModel": "m/new", "openrouterKey": "***abcd"})
        config = store.load_global_config()
        assert config.default_ai_model == "m/new"
        assert config.openrouter_key == "sk-or-global-abcd"

    @pytest.mark.asyncio
    async def test_single_tenant_config_carries_page_secrets(
        self, data_dir: Path, store: ConfigStore, mock_completion: MagicMock, mock_dispatcher: MagicMock,
    ) -> None:
        app = create_app(
            data_dir, mode=TenantMode.SINGLE, completion=mock_completion, dispatcher=mock_dispatcher,
        )
        async with _client(app) as client:
            await client.post("/api/config", json={"verifyToken": "VT-9999", "pageAccessToken": "***nope"})
            body = (await client.get("/api/config")).json()
        assert body["verifyToken"] == "***9999"
        assert body["pageAccessToken"] == ""


class TestKnowledge:
    @pytest.mark.asyncio
    async def test_upsert_list_delete(self, app: FastAPI) -> None:
        async with _client(app) as client:
            await client.post("/api/knowledge", json={"name": "faq", "content": "Open 9-5."})
            listed = (await client.get("/api/knowledge")).json()
            await client.delete("/api/knowledge/faq")
            after = (await client.get("/api/knowledge")).json()
        assert listed == [{"name": "faq", "content": "Open 9-5."}]
        assert after == []

    @pytest.mark.asyncio
    async def test_name_required(self, app: FastAPI) -> None:
        async with _client(app) as client:
            resp = await client.post("/api/knowledge", json={"content": "x"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Name required"}

    @pytest.mark.asyncio
    async def test_traversal_name_sanitized(self, app: FastAPI, data_dir: Path) -> None:
        async with _client(app) as client:
            await client.post("/api/knowledge", json={"name": "../../evil", "content": "x"})
        assert (data_dir / "knowledge" / "evil.md").exists()
        assert not (data_dir.parent / "evil.md").exists()

    @pytest.mark.asyncio
    async def test_unusable_name_rejected(self, app: FastAPI) -> None:
        async with _client(app) as client:
            resp = await client.post("/api/knowledge", json={"name": "../..", "content": "x"})
        assert resp.status_code == 400


class TestTestMessage:
    @pytest.mark.asyncio
    async def test_returns_response_without_dispatch(
        self, app: FastAPI, mock_dispatcher: MagicMock,
    ) -> None:
        async with _client(app) as client:
            resp = await client.post("/api/test", json={"message": "hello", "pageId": "page_1"})
        assert resp.json() == {"response": "Hi!"}
        mock_dispatcher.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_returns_error_shape(self, app: FastAPI, mock_completion: MagicMock) -> None:
        mock_completion.generate.return_value = CompletionResult(error="API key not configured")
        async with _client(app) as client:
            resp = await client.post("/api/test", json={"message": "hello"})
        assert resp.json() == {"error": "API key not configured"}

    @pytest.mark.asyncio
    async def test_message_required(self, app: FastAPI) -> None:
        async with _client(app) as client:
            resp = await client.post("/api/test", json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message required"}


class TestLogs:
    @pytest.mark.asyncio
    async def test_list_and_clear(self, app: FastAPI) -> None:
        app.state.event_log.log(LogEventType.SENT, {"reply": "Hi!"})
        async with _client(app) as client:
            logs = (await client.get("/api/logs")).json()
            cleared = await client.delete("/api/logs")
            after = (await client.get("/api/logs")).json()
        assert logs[0]["type"] == "sent"
        assert logs[0]["data"] == {"reply": "Hi!"}
        assert "timestamp" in logs[0]
        assert cleared.json() == {"success": True}
        assert after == []


class TestAdminAuth:
    @pytest.fixture
    def secured_app(
        self, data_dir: Path, store: ConfigStore, mock_completion: MagicMock, mock_dispatcher: MagicMock,
    ) -> FastAPI:
        return create_app(
            data_dir, admin_token=ADMIN_TOKEN,
            completion=mock_completion, dispatcher=mock_dispatcher,
        )

    @pytest.mark.asyncio
    async def test_api_requires_token(self, secured_app: FastAPI) -> None:
        async with _client(secured_app) as client:
            missing = await client.get("/api/pages")
            wrong = await client.get("/api/pages", headers={"Authorization": "Bearer nope"})
            ok = await client.get("/api/pages", headers={"Authorization": f"Bearer {ADMIN_TOKEN}"})
        assert missing.status_code == 401
        assert wrong.status_code == 403
        assert ok.status_code == 200

    @pytest.mark.asyncio
    async def test_webhook_and_health_stay_public(self, secured_app: FastAPI) -> None:
        async with _client(secured_app) as client:
            health = await client.get("/health")
            webhook = await client.post("/webhook", json={"object": "page", "entry": []})
            verify = await client.get("/webhook", params={
                "hub.mode": "subscribe", "hub.verify_token": "VERIFY-ABCD", "hub.challenge": "c",
            })
        assert health.status_code == 200
        assert webhook.text == "OK"
        assert verify.text == "c"
