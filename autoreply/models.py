"""Shared Pydantic data models for the Messenger auto-reply bot."""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_AI_MODEL = "openai/gpt-5.2"
MASK_MARKER = "***"

# --- Enums ---


class LogEventType(str, Enum):
    VERIFICATION = "verification"
    RECEIVED = "received"
    MESSAGE = "message"
    SENT = "sent"
    ERROR = "error"
    SKIP = "skip"


class TenantMode(str, Enum):
    MULTI = "multi"
    SINGLE = "single"


# --- Secrets ---


class SecretKind(str, Enum):
    UNSET = "unset"
    REDACTED = "redacted"
    LITERAL = "literal"


@dataclass(frozen=True)
class Secret:
    """A secret field as received at the API boundary.

    Operators see masked values (``***abcd``) and often send them straight
    back. A redacted value must never replace the stored secret, so parsing
    sorts every incoming value into one of three cases up front.
    """

    kind: SecretKind
    value: str = ""

    @classmethod
    def parse(cls, raw: object) -> Secret:
        if not isinstance(raw, str) or not raw:
            return cls(SecretKind.UNSET)
        if is_masked(raw):
            return cls(SecretKind.REDACTED)
        return cls(SecretKind.LITERAL, raw)

    def apply(self, current: str) -> str:
        """Return the value to store given the currently stored one."""
        if self.kind is SecretKind.LITERAL:
            return self.value
        return current


def is_masked(value: str) -> bool:
    return value.startswith(MASK_MARKER)


def mask_secret(value: str) -> str:
    """Show only the last 4 characters of a secret."""
    if not value:
        return ""
    return MASK_MARKER + value[-4:]


# --- Config Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def new_page_id() -> str:
    return f"page_{int(time.time() * 1000)}"


def generate_verify_token() -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "VERIFY_TOKEN_" + "".join(secrets.choice(alphabet) for _ in range(6))


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PageConfig(_CamelModel):
    id: str
    name: str
    verify_token: str = Field(default_factory=generate_verify_token)
    page_access_token: str = ""
    openrouter_key: str = ""
    ai_model: str = DEFAULT_AI_MODEL
    knowledge_base: list[str] = Field(default_factory=list)
    enabled: bool = True
    created_at: str = Field(default_factory=_now_iso)

    def masked(self) -> dict[str, object]:
        data = self.model_dump(by_alias=True)
        data["verifyToken"] = mask_secret(self.verify_token)
        data["pageAccessToken"] = mask_secret(self.page_access_token)
        data["openrouterKey"] = mask_secret(self.openrouter_key)
        return data


_UNSET = Secret(SecretKind.UNSET)


@dataclass(frozen=True)
class PageUpdate:
    """Partial update for a page; secrets already parsed into ``Secret``."""

    name: str | None = None
    verify_token: Secret = _UNSET
    page_access_token: Secret = _UNSET
    openrouter_key: Secret = _UNSET
    ai_model: str | None = None
    knowledge_base: list[str] | None = None
    enabled: bool | None = None

    @classmethod
    def from_request(cls, body: dict[str, object]) -> PageUpdate:
        knowledge_base = body.get("knowledgeBase")
        enabled = body.get("enabled")
        return cls(
            name=_str_or_none(body.get("name")),
            verify_token=Secret.parse(body.get("verifyToken")),
            page_access_token=Secret.parse(body.get("pageAccessToken")),
            openrouter_key=Secret.parse(body.get("openrouterKey")),
            ai_model=_str_or_none(body.get("aiModel")),
            knowledge_base=(
                [str(n) for n in knowledge_base]
                if isinstance(knowledge_base, list) else None
            ),
            enabled=enabled if isinstance(enabled, bool) else None,
        )

    def apply(self, page: PageConfig) -> PageConfig:
        changes: dict[str, object] = {
            "verify_token": self.verify_token.apply(page.verify_token),
            "page_access_token": self.page_access_token.apply(page.page_access_token),
            "openrouter_key": self.openrouter_key.apply(page.openrouter_key),
        }
        if self.name:
            changes["name"] = self.name
        if self.ai_model:
            changes["ai_model"] = self.ai_model
        if self.knowledge_base is not None:
            changes["knowledge_base"] = self.knowledge_base
        if self.enabled is not None:
            changes["enabled"] = self.enabled
        return page.model_copy(update=changes)


def _str_or_none(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


class GlobalConfig(_CamelModel):
    default_ai_model: str = DEFAULT_AI_MODEL
    openrouter_key: str = ""
    # Only used in single-tenant mode, where this record is the implicit page.
    verify_token: str = ""
    page_access_token: str = ""

    def masked(self, mode: TenantMode = TenantMode.MULTI) -> dict[str, object]:
        data: dict[str, object] = {
            "defaultAiModel": self.default_ai_model,
            "openrouterKey": mask_secret(self.openrouter_key),
        }
        if mode is TenantMode.SINGLE:
            data["verifyToken"] = mask_secret(self.verify_token)
            data["pageAccessToken"] = mask_secret(self.page_access_token)
        return data


# --- Knowledge Models ---


class KnowledgeDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    content: str


# --- Event Log Models ---


class LogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(default_factory=_now_iso)
    type: LogEventType
    data: dict[str, object] | None = None
