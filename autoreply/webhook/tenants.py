"""Tenant resolution for inbound webhook entries.

Multi-tenant deployments keep one page configuration per Messenger page.
Single-tenant deployments have one implicit page whose credentials live in
the global configuration record.
"""

from __future__ import annotations

import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from autoreply.models import GlobalConfig, PageConfig, TenantMode
from autoreply.store.config_store import ConfigStore

SINGLE_TENANT_ID = "default"
SINGLE_TENANT_NAME = "Default Page"


@dataclass(frozen=True)
class Tenant:
    """Settings the pipeline needs for one page."""

    id: str
    name: str
    page_access_token: str = ""
    openrouter_key: str = ""
    ai_model: str = ""
    enabled: bool = True
    knowledge_base: list[str] = field(default_factory=list)

    @classmethod
    def from_page(cls, page: PageConfig) -> Tenant:
        return cls(
            id=page.id,
            name=page.name,
            page_access_token=page.page_access_token,
            openrouter_key=page.openrouter_key,
            ai_model=page.ai_model,
            enabled=page.enabled,
            knowledge_base=list(page.knowledge_base),
        )


class TenantDirectory(ABC):
    """Looks up tenants for verification, inbound entries and test messages."""

    mode: TenantMode

    def __init__(self, store: ConfigStore) -> None:
        self.store = store

    def defaults(self) -> GlobalConfig:
        return self.store.load_global_config()

    @abstractmethod
    def verify_token_matches(self, token: str) -> bool:
        """Return True if the token belongs to a configured page."""
        ...

    @abstractmethod
    def resolve_entry(self, entry_id: str) -> Tenant | None:
        """Find the tenant owning a webhook entry."""
        ...

    @abstractmethod
    def get(self, tenant_id: str | None) -> Tenant | None:
        """Find a tenant by id, as used by the test-message endpoint."""
        ...


class MultiTenantDirectory(TenantDirectory):
    mode = TenantMode.MULTI

    def verify_token_matches(self, token: str) -> bool:
        if not token:
            return False
        # Check every page so timing does not reveal which page matched.
        matched = False
        for page in self.store.load_pages():
            if page.verify_token and hmac.compare_digest(page.verify_token.encode(), token.encode()):
                matched = True
        return matched

    def resolve_entry(self, entry_id: str) -> Tenant | None:
        for page in self.store.load_pages():
            if page.id == entry_id or (
                entry_id and entry_id in page.page_access_token
            ):
                return Tenant.from_page(page)
        return None

    def get(self, tenant_id: str | None) -> Tenant | None:
        if not tenant_id:
            return None
        page = self.store.get_page(tenant_id)
        return Tenant.from_page(page) if page else None


class SingleTenantDirectory(TenantDirectory):
    mode = TenantMode.SINGLE

    def verify_token_matches(self, token: str) -> bool:
        expected = self.defaults().verify_token
        if not token or not expected:
            return False
        return hmac.compare_digest(expected.encode(), token.encode())

    def resolve_entry(self, entry_id: str) -> Tenant | None:
        return self._implicit_tenant()

    def get(self, tenant_id: str | None) -> Tenant | None:
        return self._implicit_tenant()

    def _implicit_tenant(self) -> Tenant:
        config = self.defaults()
        return Tenant(
            id=SINGLE_TENANT_ID,
            name=SINGLE_TENANT_NAME,
            page_access_token=config.page_access_token,
        )


def create_tenant_directory(mode: TenantMode, store: ConfigStore) -> TenantDirectory:
    if mode is TenantMode.SINGLE:
        return SingleTenantDirectory(store)
    return MultiTenantDirectory(store)
