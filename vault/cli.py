"""
CLI interface for the content vault.

Usage:
    vault note "Remember to renew the passport" --tag todo
    vault link https://example.com --title "Example" --tag web,reference
    vault search "example" --from 2024-01-01
    vault list --days 3
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

import typer
from typing_extensions import Annotated

from .config import get_default_store_path, load_or_create_config
from .item_store import ItemStore
from .logging_config import (
    configure_ops_log,
    configure_quiet_mode,
    enable_debug_mode,
    remove_ops_log,
)
from .types import KIND_NOTE, Item, SaveResult, is_absolute_url

# Body text longer than this is truncated in result listings
BODY_PREVIEW_CHARS = 100


# Configure quiet mode by default (suppress verbose library output)
# Set VAULT_VERBOSE=1 to enable debug mode via environment
if os.environ.get("VAULT_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"vault {version('content-vault')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None
_ops_log_handler = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    _store_override = value


def _get_store_override() -> Optional[Path]:
    return _store_override


app = typer.Typer(
    name="vault",
    help="Personal vault for notes and links.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


# -----------------------------------------------------------------------------
# Output Formatting
#
# Shared by the CLI and the MCP server. JSON output (--json) bypasses these
# and prints snapshot-format objects.
# -----------------------------------------------------------------------------

def format_date(created: datetime, now: Optional[datetime] = None) -> str:
    """Relative save date: 'Today, 09:30 AM', 'Yesterday', '3 days ago', 'Jan 5'."""
    now = now or datetime.now(timezone.utc)
    diff_days = (now - created).days
    local = created.astimezone()
    if diff_days <= 0:
        return "Today, " + local.strftime("%I:%M %p")
    if diff_days == 1:
        return "Yesterday"
    if diff_days < 7:
        return f"{diff_days} days ago"
    return f"{local:%b} {local.day}"


def _format_tags(tags: Sequence[str], sep: str = ", ") -> str:
    return sep.join(tags) if tags else "none"


def format_save_confirmation(item: Item, now: Optional[datetime] = None) -> str:
    """Confirmation shown after a new item is saved."""
    lines = ["✔ Saved to Content Vault", f"Type: {item.kind}"]
    if item.title:
        lines.append(f'Title: "{item.title}"')
    if item.url:
        lines.append(f"URL: {item.url}")
    lines.append(f"Tags: {_format_tags(item.tags)}")
    lines.append(f"ID: {item.id}")
    lines.append(f"Saved: {format_date(item.created, now)}")
    return "\n".join(lines)


def format_duplicate_message(item: Item) -> str:
    """Message shown when a link was already saved."""
    lines = ["ℹ️ This link is already saved"]
    if item.title:
        lines.append(f"Title: {item.title}")
    lines.append(f"Tags: {_format_tags(item.tags, ' · ')}")
    lines.append(f"ID: {item.id}")
    return "\n".join(lines)


def format_save_result(result: SaveResult, now: Optional[datetime] = None) -> str:
    if result.is_duplicate:
        return format_duplicate_message(result.item)
    return format_save_confirmation(result.item, now)


def format_item(item: Item, now: Optional[datetime] = None) -> str:
    """One result block."""
    emoji = "📝" if item.kind == KIND_NOTE else "🔗"
    lines = [f"{emoji} {item.title or '(Untitled)'}"]
    if item.body:
        body = item.body
        if len(body) > BODY_PREVIEW_CHARS:
            body = body[:BODY_PREVIEW_CHARS] + "..."
        lines.append(f'"{body}"')
    if item.url:
        lines.append(f"[Open Link: {item.url}]")
    lines.append(f"Tags: {_format_tags(item.tags)}")
    lines.append(f"Saved: {format_date(item.created, now)}")
    lines.append(f"ID: {item.id}")
    return "\n".join(lines)


def format_items(items: list[Item], now: Optional[datetime] = None) -> str:
    """Result blocks separated by blank lines."""
    return "\n\n".join(format_item(item, now) for item in items)


def _items_json(items: list[Item]) -> str:
    return json.dumps([item.to_dict() for item in items], indent=2, ensure_ascii=False)


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

StoreOption = Annotated[
    Optional[Path],
    typer.Option(
        "--store", "-s",
        envvar="VAULT_STORE_PATH",
        help="Path to the store directory (default: ~/.content-vault/)"
    )
]

TagOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--tag",
        help="Tag (repeatable, or comma-separated)"
    )
]

LimitOption = Annotated[
    Optional[int],
    typer.Option(
        "--limit", "-n",
        help="Maximum results to return"
    )
]


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="VAULT_STORE_PATH",
        help="Path to the store directory",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Personal vault for notes and links."""


def _resolve_store_path(store: Optional[Path]) -> Path:
    actual = store if store is not None else _get_store_override()
    if actual is None:
        actual = get_default_store_path()
    return Path(actual).expanduser()


def _get_store(store: Optional[Path]) -> tuple[ItemStore, int]:
    """Open and load the store, returning it with the configured recent window."""
    store_path = _resolve_store_path(store)
    try:
        config = load_or_create_config(store_path)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    global _ops_log_handler
    remove_ops_log(_ops_log_handler)
    _ops_log_handler = configure_ops_log(store_path)
    item_store = ItemStore(store_path, snapshot_name=config.snapshot)
    item_store.initialize()
    return item_store, config.recent_days


def _parse_tags(tags: Optional[list[str]]) -> list[str]:
    """Flatten repeatable and comma-separated tag options."""
    if not tags:
        return []
    parsed = []
    for tag in tags:
        parsed.extend(part for part in tag.split(",") if part.strip())
    return parsed


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command()
def note(
    body: Annotated[str, typer.Argument(help="Note text")],
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Note title")] = None,
    tag: TagOption = None,
    store: StoreOption = None,
):
    """
    Save a note.

    \b
    Examples:
        vault note "Call the plumber" --tag home
        vault note "Use ruff" --title "Linting" --tag python,tooling
    """
    if not body.strip():
        typer.echo("Error: Body text is required for notes", err=True)
        raise typer.Exit(1)
    item_store, _ = _get_store(store)
    result = item_store.save_note(body, title=title, tags=_parse_tags(tag))
    if _get_json_output():
        typer.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        typer.echo(format_save_result(result))


@app.command()
def link(
    url: Annotated[str, typer.Argument(help="URL to save")],
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Link title")] = None,
    comment: Annotated[Optional[str], typer.Option("--comment", "-c", help="Commentary about the link")] = None,
    tag: TagOption = None,
    store: StoreOption = None,
):
    """
    Save a link. Saving a URL that is already stored merges tags instead.

    \b
    Examples:
        vault link https://example.com --title "Example" --comment "Great site" --tag web,example
    """
    if not url.strip():
        typer.echo("Error: URL is required for links", err=True)
        raise typer.Exit(1)
    if not is_absolute_url(url):
        typer.echo("Error: Invalid URL format", err=True)
        raise typer.Exit(1)
    item_store, _ = _get_store(store)
    result = item_store.save_link(url, title=title, comment=comment, tags=_parse_tags(tag))
    if _get_json_output():
        typer.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        typer.echo(format_save_result(result))


@app.command()
def search(
    query: Annotated[Optional[str], typer.Argument(help="Text to find in title, body or URL")] = None,
    tag: TagOption = None,
    date_from: Annotated[Optional[str], typer.Option(
        "--from", help="Created on or after (ISO date or timestamp)"
    )] = None,
    date_to: Annotated[Optional[str], typer.Option(
        "--to", help="Created on or before (a bare date includes the whole day)"
    )] = None,
    limit: LimitOption = None,
    store: StoreOption = None,
):
    """
    Search notes and links by text, tags and date range.

    \b
    Examples:
        vault search python
        vault search --tag web --from 2024-03-01
        vault search "release notes" --to 2024-06-30
    """
    item_store, _ = _get_store(store)
    try:
        results = item_store.search_items(
            query=query, tags=_parse_tags(tag), date_from=date_from, date_to=date_to,
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if limit is not None and limit > 0:
        results = results[:limit]

    if _get_json_output():
        typer.echo(_items_json(results))
    elif not results:
        typer.echo("No items found matching your search criteria.")
    else:
        typer.echo(format_items(results))


@app.command("list")
def list_recent(
    days: Annotated[Optional[float], typer.Option(
        "--days", "-d", help="Days to look back (default from config, normally 7)"
    )] = None,
    limit: LimitOption = None,
    store: StoreOption = None,
):
    """
    List recently saved items, newest first.
    """
    item_store, recent_days = _get_store(store)
    window = days if days is not None else recent_days
    results = item_store.get_recent_items(window, limit)

    if _get_json_output():
        typer.echo(_items_json(results))
    elif not results:
        typer.echo(f"No items found from the last {window:g} day(s).")
    else:
        typer.echo(format_items(results))


@app.command()
def get(
    id: Annotated[str, typer.Argument(help="Item ID")],
    store: StoreOption = None,
):
    """Show one item."""
    item_store, _ = _get_store(store)
    item = item_store.get_item(id)
    if item is None:
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    if _get_json_output():
        typer.echo(json.dumps(item.to_dict(), indent=2, ensure_ascii=False))
    else:
        typer.echo(format_item(item))


@app.command("del")
def del_cmd(
    id: Annotated[list[str], typer.Argument(help="ID(s) of item(s) to delete")],
    store: StoreOption = None,
):
    """
    Delete item(s) by ID.
    """
    item_store, _ = _get_store(store)
    had_errors = False
    for one_id in id:
        if item_store.delete_item(one_id):
            typer.echo(f"Deleted {one_id}")
        else:
            typer.echo(f"Not found: {one_id}", err=True)
            had_errors = True
    if had_errors:
        raise typer.Exit(1)


@app.command()
def tags(
    store: StoreOption = None,
):
    """List all tags in use."""
    item_store, _ = _get_store(store)
    values = item_store.list_tags()
    if _get_json_output():
        typer.echo(json.dumps(values))
    else:
        for value in values:
            typer.echo(value)


@app.command()
def mcp(
    store: StoreOption = None,
):
    """Start MCP stdio server for AI agent integration."""
    if store is not None:
        os.environ["VAULT_STORE_PATH"] = str(store)
    elif _get_store_override() is not None:
        os.environ["VAULT_STORE_PATH"] = str(_get_store_override())
    from .mcp import main as mcp_main
    mcp_main()


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="vault CLI", store_path=_get_store_override())
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
