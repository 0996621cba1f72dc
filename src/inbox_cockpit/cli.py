"""inbox-cockpit CLI - inspect and maintain the local cockpit store."""

import json
import logging
import sys
from pathlib import Path

import click

from .cache import SummaryStore, now_ms
from .config import config_path, load_config, storage_path
from .conventions import NAMESPACES
from .history import GenerationHistory
from .identity import resolve_identity
from .logs import setup_logging
from .models import MessageMetadata, Recipient
from .storage import JsonFileStorage
from .workspace import WorkspaceStore

logger = logging.getLogger(__name__)

NAMESPACE_CHOICES = [*NAMESPACES, "all"]


class _Stores:
    """The three namespaces over one storage file."""

    def __init__(self, path: Path, retention_ms: int, history_max: int) -> None:
        self.storage = JsonFileStorage(path)
        self.summaries = SummaryStore(self.storage, retention_ms=retention_ms)
        self.workspaces = WorkspaceStore(self.storage, retention_ms=retention_ms)
        self.history = GenerationHistory(
            self.storage, retention_ms=retention_ms, max_entries=history_max
        )


def _age(timestamp_ms: int) -> str:
    minutes = max(0, now_ms() - timestamp_ms) // 60_000
    if minutes < 60:
        return f"{minutes}m"
    if minutes < 24 * 60:
        return f"{minutes // 60}h"
    return f"{minutes // (24 * 60)}d"


@click.group(help="Inbox Cockpit local store tool.")
@click.option(
    "--storage",
    "storage_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Storage file to use instead of the configured one.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to console and log file.")
@click.version_option(package_name="inbox-cockpit")
@click.pass_context
def main(ctx: click.Context, storage_file: Path | None, verbose: bool) -> None:
    """Inbox Cockpit local store tool."""
    if verbose:
        setup_logging(level=logging.DEBUG)
    config = load_config()
    path = storage_file or storage_path(config)
    ctx.obj = _Stores(path, config.cache.retention_ms, config.cache.history_max_entries)


@main.command(help="Compute the cache key for an email.")
@click.option("--thread-id", default="", help="Conversation/thread id.")
@click.option("--message-id", default="", help="Internet message id.")
@click.option("--item-id", default="", help="Host item id.")
@click.option("--subject", default="", help="Subject line.")
@click.option("--sender", default="", help="Sender address.")
@click.option("--to", "to_addrs", multiple=True, help="Recipient address (repeatable).")
def identity(
    thread_id: str,
    message_id: str,
    item_id: str,
    subject: str,
    sender: str,
    to_addrs: tuple[str, ...],
) -> None:
    metadata = MessageMetadata(
        thread_id=thread_id,
        message_id=message_id,
        item_id=item_id,
        subject=subject,
        sender_email=sender,
        to_list=[Recipient(email=a) for a in to_addrs],
    )
    click.echo(resolve_identity(metadata))


# ── Cache commands ───────────────────────────────────────────────


@main.group("cache")
def cache_group() -> None:
    """Inspect and maintain cached summaries, workspaces and history."""


@cache_group.command("list")
@click.option(
    "--namespace",
    type=click.Choice(NAMESPACE_CHOICES),
    default="all",
    show_default=True,
)
@click.pass_obj
def cache_list(stores: _Stores, namespace: str) -> None:
    """List unexpired records, newest first."""
    if namespace in ("summaries", "all"):
        records = stores.summaries.list_records()
        click.echo(f"Summaries ({len(records)})")
        for key, record in records:
            preview = record.value.text.replace("\n", " ")[:60]
            click.echo(f"  {key}  {_age(record.timestamp_ms):>4}  {preview}")
    if namespace in ("workspaces", "all"):
        records = stores.workspaces.list_records()
        click.echo(f"Workspaces ({len(records)})")
        for key, record in records:
            filled = sum(1 for slot in record.value.slots if not slot.is_empty)
            click.echo(
                f"  {key}  {_age(record.timestamp_ms):>4}  "
                f"{filled} result(s)  {record.value.subject}"
            )
    if namespace in ("history", "all"):
        entries = stores.history.load()
        click.echo(f"History ({len(entries)})")
        for entry in reversed(entries):
            click.echo(f"  {entry.email_identity}  {_age(entry.timestamp_ms):>4}  {entry.subject}")


@cache_group.command("show")
@click.argument("identity_key", metavar="IDENTITY")
@click.pass_obj
def cache_show(stores: _Stores, identity_key: str) -> None:
    """Show everything cached for one email as JSON."""
    summary = stores.summaries.get(identity_key)
    workspace = stores.workspaces.get(identity_key)
    history = stores.history.entries_for(identity_key)
    if summary is None and workspace is None and not history:
        click.echo(f"Nothing cached for {identity_key}", err=True)
        sys.exit(1)

    data = {
        "identity": identity_key,
        "summary": summary.to_dict() if summary else None,
        "workspace": workspace.to_dict() if workspace else None,
        "history": [e.to_dict() for e in history],
    }
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@cache_group.command("prune")
@click.pass_obj
def cache_prune(stores: _Stores) -> None:
    """Drop expired records from every namespace."""
    removed_summaries = stores.summaries.prune()
    removed_workspaces = stores.workspaces.prune()
    kept = len(stores.history.load())
    click.echo(f"Summaries removed: {removed_summaries}")
    click.echo(f"Workspaces removed: {removed_workspaces}")
    click.echo(f"History entries kept: {kept}")


@cache_group.command("clear")
@click.option(
    "--namespace",
    type=click.Choice(NAMESPACE_CHOICES),
    default="all",
    show_default=True,
)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
def cache_clear(stores: _Stores, namespace: str, yes: bool) -> None:
    """Delete a namespace (or all of them)."""
    if not yes and not click.confirm(f"Clear {namespace} in {stores.storage.path}?"):
        click.echo("Aborted.")
        return
    if namespace in ("summaries", "all"):
        stores.summaries.clear()
    if namespace in ("workspaces", "all"):
        stores.workspaces.clear()
    if namespace in ("history", "all"):
        stores.history.clear()
    click.echo(f"Cleared {namespace}.")


# ── Config commands ──────────────────────────────────────────────


@main.group("config")
def config_group() -> None:
    """Show cockpit configuration."""


@config_group.command("show")
def config_show() -> None:
    """Print the effective configuration (file + environment) as JSON."""
    config = load_config()
    click.echo(json.dumps(config.model_dump(), indent=2))


@config_group.command("path")
def config_path_cmd() -> None:
    """Print where cockpit.yaml is read from."""
    click.echo(str(config_path()))

