"""Shared test fixtures for the Messenger auto-reply bot."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from autoreply.audit.event_log import EventLog
from autoreply.models import GlobalConfig, PageConfig
from autoreply.store.config_store import ConfigStore
from autoreply.store.knowledge_store import KnowledgeStore
from autoreply.webhook.completion import CompletionClient, CompletionResult
from autoreply.webhook.messenger import DispatchResult, MessengerDispatcher


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def config_store(data_dir: Path) -> ConfigStore:
    return ConfigStore(data_dir)


@pytest.fixture
def knowledge_store(data_dir: Path) -> KnowledgeStore:
    return KnowledgeStore(data_dir / "knowledge")


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def mock_completion() -> MagicMock:
    completion = MagicMock(spec=CompletionClient)
    completion.generate = AsyncMock(return_value=CompletionResult(response="Hi!"))
    return completion


@pytest.fixture
def mock_dispatcher() -> MagicMock:
    dispatcher = MagicMock(spec=MessengerDispatcher)
    dispatcher.send = AsyncMock(return_value=DispatchResult(delivered=True))
    return dispatcher


# --- Factory functions for test data ---


def make_page(**kwargs: Any) -> PageConfig:
    """Factory for PageConfig with sensible defaults."""
    defaults: dict[str, Any] = {
        "id": "page_1",
        "name": "Test Page",
        "verify_token": "T1",
        "page_access_token": "EAAB-page-token-1234",
        "openrouter_key": "",
        "ai_model": "openai/gpt-5.2",
        "enabled": True,
    }
    defaults.update(kwargs)
    return PageConfig(**defaults)


def make_global_config(**kwargs: Any) -> GlobalConfig:
    """Factory for GlobalConfig with sensible defaults."""
    defaults: dict[str, Any] = {
        "default_ai_model": "openai/gpt-5.2",
        "openrouter_key": "sk-or-global-abcd",
    }
    defaults.update(kwargs)
    return GlobalConfig(**defaults)


def make_page_payload(
    entry_id: str = "page_1",
    sender_id: str = "USER_1",
    text: str | None = "hello",
) -> dict[str, Any]:
    """Factory for a Messenger webhook payload with one message."""
    messaging: dict[str, Any] = {"sender": {"id": sender_id}}
    if text is not None:
        messaging["message"] = {"text": text}
    return {
        "object": "page",
        "entry": [{"id": entry_id, "messaging": [messaging]}],
    }


def mock_async_client(mock_client_cls: MagicMock, **post_kwargs: Any) -> AsyncMock:
    """Configure a patched ``httpx.AsyncClient`` class and return the client."""
    mock_client = AsyncMock()
    if "side_effect" in post_kwargs:
        mock_client.post.side_effect = post_kwargs["side_effect"]
    else:
        mock_client.post.return_value = post_kwargs.get("return_value")
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client
