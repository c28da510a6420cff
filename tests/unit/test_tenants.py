"""Tests for multi- and single-tenant resolution."""

from __future__ import annotations

from autoreply.models import TenantMode
from autoreply.store.config_store import ConfigStore
from autoreply.webhook.tenants import (
    MultiTenantDirectory,
    SingleTenantDirectory,
    create_tenant_directory,
)
from tests.conftest import make_global_config, make_page


class TestMultiTenant:
    def test_verify_token_matches_any_page(self, config_store: ConfigStore) -> None:
        config_store.save_pages([make_page(id="a", verify_token="T1"), make_page(id="b", verify_token="T2")])
        directory = MultiTenantDirectory(config_store)
        assert directory.verify_token_matches("T2") is True
        assert directory.verify_token_matches("WRONG") is False
        assert directory.verify_token_matches("") is False

    def test_non_ascii_token_does_not_raise(self, config_store: ConfigStore) -> None:
        config_store.save_pages([make_page()])
        assert MultiTenantDirectory(config_store).verify_token_matches("tökén") is False

    def test_resolve_by_page_id(self, config_store: ConfigStore) -> None:
        config_store.save_pages([make_page(id="page_1", name="Shop")])
        tenant = MultiTenantDirectory(config_store).resolve_entry("page_1")
        assert tenant is not None
        assert tenant.name == "Shop"

    def test_resolve_by_access_token_containment(self, config_store: ConfigStore) -> None:
        config_store.save_pages([make_page(id="page_1", page_access_token="EAAB|1029384756|xyz")])
        tenant = MultiTenantDirectory(config_store).resolve_entry("1029384756")
        assert tenant is not None
        assert tenant.id == "page_1"

    def test_unknown_entry_unresolved(self, config_store: ConfigStore) -> None:
        config_store.save_pages([make_page()])
        assert MultiTenantDirectory(config_store).resolve_entry("999") is None

    def test_get_by_id(self, config_store: ConfigStore) -> None:
        config_store.save_pages([make_page(openrouter_key="sk-page")])
        directory = MultiTenantDirectory(config_store)
        assert directory.get("page_1").openrouter_key == "sk-page"
        assert directory.get(None) is None
        assert directory.get("missing") is None


class TestSingleTenant:
    def test_verify_against_global_token(self, config_store: ConfigStore) -> None:
        config_store.save_global_config(make_global_config(verify_token="T1"))
        directory = SingleTenantDirectory(config_store)
        assert directory.verify_token_matches("T1") is True
        assert directory.verify_token_matches("T2") is False

    def test_unset_token_never_verifies(self, config_store: ConfigStore) -> None:
        assert SingleTenantDirectory(config_store).verify_token_matches("") is False

    def test_every_entry_resolves_to_implicit_tenant(self, config_store: ConfigStore) -> None:
        config_store.save_global_config(make_global_config(page_access_token="EAAB-single"))
        tenant = SingleTenantDirectory(config_store).resolve_entry("anything")
        assert tenant is not None
        assert tenant.enabled is True
        assert tenant.page_access_token == "EAAB-single"
        assert tenant.openrouter_key == ""


def test_factory_selects_directory(config_store: ConfigStore) -> None:
    assert isinstance(create_tenant_directory(TenantMode.SINGLE, config_store), SingleTenantDirectory)
    assert isinstance(create_tenant_directory(TenantMode.MULTI, config_store), MultiTenantDirectory)
