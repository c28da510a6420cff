"""Click CLI for managing pages, knowledge and global configuration."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click

from autoreply.api.app import build_pipeline
from autoreply.audit.event_log import EventLog
from autoreply.models import PageUpdate, Secret, TenantMode
from autoreply.store.config_store import ConfigStore, PageNotFoundError
from autoreply.store.knowledge_store import InvalidDocumentNameError, KnowledgeStore
from autoreply.webhook.pipeline import WebhookPipeline


@click.group()
@click.option("--data-dir", default="data", envvar="DATA_DIR", help="Directory holding pages, config and knowledge.")
@click.option(
    "--tenant-mode",
    type=click.Choice([m.value for m in TenantMode]),
    default=TenantMode.MULTI.value,
    envvar="TENANT_MODE",
    help="Serve many pages or one implicit page.",
)
@click.pass_context
def cli(ctx: click.Context, data_dir: str, tenant_mode: str) -> None:
    """Messenger auto-reply bot administration CLI."""
    ctx.ensure_object(dict)
    config_store, knowledge_store, pipeline = build_pipeline(
        data_dir, EventLog(), TenantMode(tenant_mode),
    )
    ctx.obj["config"] = config_store
    ctx.obj["knowledge"] = knowledge_store
    ctx.obj["pipeline"] = pipeline
    ctx.obj["mode"] = TenantMode(tenant_mode)


# --- pages ---


@cli.group("pages")
def pages_group() -> None:
    """Manage page configurations."""


@pages_group.command("list")
@click.pass_context
def pages_list(ctx: click.Context) -> None:
    """List pages with secrets masked."""
    store: ConfigStore = ctx.obj["config"]
    click.echo(json.dumps([p.masked() for p in store.load_pages()], indent=2))


@pages_group.command("add")
@click.option("--name", default=None, help="Display name.")
@click.option("--verify-token", default=None, help="Webhook verify token (generated if omitted).")
@click.option("--page-access-token", default=None, help="Messenger page access token.")
@click.option("--openrouter-key", default=None, help="Per-page completion API key.")
@click.option("--ai-model", default=None, help="Per-page model identifier.")
@click.pass_context
def pages_add(
    ctx: click.Context,
    name: str | None,
    verify_token: str | None,
    page_access_token: str | None,
    openrouter_key: str | None,
    ai_model: str | None,
) -> None:
    """Create a page configuration."""
    store: ConfigStore = ctx.obj["config"]
    page = store.create_page(
        name=name,
        verify_token=verify_token,
        page_access_token=page_access_token,
        openrouter_key=openrouter_key,
        ai_model=ai_model,
    )
    click.echo(json.dumps({"id": page.id, "name": page.name, "verifyToken": page.verify_token}, indent=2))


@pages_group.command("remove")
@click.argument("page_id")
@click.pass_context
def pages_remove(ctx: click.Context, page_id: str) -> None:
    """Delete a page configuration."""
    store: ConfigStore = ctx.obj["config"]
    store.delete_page(page_id)
    click.echo(f"Removed page: {page_id}")


def _set_enabled(ctx: click.Context, page_id: str, enabled: bool) -> None:
    store: ConfigStore = ctx.obj["config"]
    try:
        page = store.update_page(page_id, PageUpdate(enabled=enabled))
    except PageNotFoundError as e:
        raise click.ClickException(str(e)) from e
    state = "enabled" if page.enabled else "disabled"
    click.echo(f"Page {page.name} {state}")


@pages_group.command("enable")
@click.argument("page_id")
@click.pass_context
def pages_enable(ctx: click.Context, page_id: str) -> None:
    """Enable auto-replies for a page."""
    _set_enabled(ctx, page_id, True)


@pages_group.command("disable")
@click.argument("page_id")
@click.pass_context
def pages_disable(ctx: click.Context, page_id: str) -> None:
    """Disable auto-replies for a page."""
    _set_enabled(ctx, page_id, False)


# --- knowledge ---


@cli.group("knowledge")
def knowledge_group() -> None:
    """Manage knowledge documents."""


@knowledge_group.command("list")
@click.pass_context
def knowledge_list(ctx: click.Context) -> None:
    """List knowledge document names."""
    store: KnowledgeStore = ctx.obj["knowledge"]
    for doc in store.list_documents():
        click.echo(doc.name)


@knowledge_group.command("put")
@click.argument("name")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def knowledge_put(ctx: click.Context, name: str, source: Path) -> None:
    """Store the contents of SOURCE as knowledge document NAME."""
    store: KnowledgeStore = ctx.obj["knowledge"]
    try:
        doc = store.put(name, source.read_text(encoding="utf-8"))
    except InvalidDocumentNameError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Stored knowledge document: {doc.name}")


@knowledge_group.command("remove")
@click.argument("name")
@click.pass_context
def knowledge_remove(ctx: click.Context, name: str) -> None:
    """Delete a knowledge document."""
    store: KnowledgeStore = ctx.obj["knowledge"]
    try:
        removed = store.delete(name)
    except InvalidDocumentNameError as e:
        raise click.ClickException(str(e)) from e
    if not removed:
        raise click.ClickException(f"Knowledge document not found: {name}")
    click.echo(f"Removed knowledge document: {name}")


# --- global config ---


@cli.group("config")
def config_group() -> None:
    """Show or change the global configuration."""


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the global configuration with secrets masked."""
    store: ConfigStore = ctx.obj["config"]
    click.echo(json.dumps(store.load_global_config().masked(ctx.obj["mode"]), indent=2))


@config_group.command("set")
@click.option("--default-model", default=None, help="Default model identifier.")
@click.option("--openrouter-key", default=None, help="Default completion API key.")
@click.option("--verify-token", default=None, help="Verify token (single-tenant mode).")
@click.option("--page-access-token", default=None, help="Page access token (single-tenant mode).")
@click.pass_context
def config_set(
    ctx: click.Context,
    default_model: str | None,
    openrouter_key: str | None,
    verify_token: str | None,
    page_access_token: str | None,
) -> None:
    """Update the global configuration."""
    store: ConfigStore = ctx.obj["config"]
    config = store.load_global_config()
    changes: dict[str, object] = {
        "openrouter_key": Secret.parse(openrouter_key).apply(config.openrouter_key),
        "verify_token": Secret.parse(verify_token).apply(config.verify_token),
        "page_access_token": Secret.parse(page_access_token).apply(config.page_access_token),
    }
    if default_model:
        changes["default_ai_model"] = default_model
    store.save_global_config(config.model_copy(update=changes))
    click.echo("Configuration saved")


# --- test ---


@cli.command("test")
@click.argument("message")
@click.option("--page-id", default=None, help="Page whose key and model to use.")
@click.pass_context
def try_message(ctx: click.Context, message: str, page_id: str | None) -> None:
    """Generate a reply for MESSAGE without sending it."""
    pipeline: WebhookPipeline = ctx.obj["pipeline"]
    result = asyncio.run(pipeline.test_message(message, page_id))
    click.echo(json.dumps(result.to_dict(), indent=2))
    if result.error is not None:
        ctx.exit(1)
