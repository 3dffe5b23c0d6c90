"""
MCP stdio server for the content vault.

Exposes ItemStore operations as MCP tools so AI agents can save notes
and links and query them back.

Usage:
    vault mcp                                  # stdio server (via CLI)
    claude --mcp-server vault="vault mcp"      # Claude Code integration

All store calls are serialized through a single asyncio.Lock.
"""

import asyncio
import logging
from typing import Annotated, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .cli import format_item, format_items, format_save_result
from .config import get_default_store_path, load_or_create_config
from .item_store import DEFAULT_RECENT_DAYS, ItemStore
from .types import is_absolute_url

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "content-vault",
    instructions=(
        "Personal vault for notes and links. "
        "Save notes and URLs with tags, then search them by text, tag or date. "
        "Saving a URL twice merges into the existing link."
    ),
)

_store: Optional[ItemStore] = None
_recent_days: Optional[int] = None
_lock = asyncio.Lock()


def _get_store() -> ItemStore:
    """Lazy-init the store (respects VAULT_STORE_PATH env).

    Must be called inside ``async with _lock``.
    """
    global _store, _recent_days
    if _store is None:
        store_path = get_default_store_path()
        config = load_or_create_config(store_path)
        _recent_days = config.recent_days
        _store = ItemStore(store_path, snapshot_name=config.snapshot)
        _store.initialize()
        logger.info("Serving %d items from %s", len(_store), store_path)
    return _store


def _default_days() -> float:
    return _recent_days or DEFAULT_RECENT_DAYS


# ---------------------------------------------------------------------------
# Tool annotations
# ---------------------------------------------------------------------------

_READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False)
_IDEMPOTENT = ToolAnnotations(idempotentHint=True, destructiveHint=False)
_ADDITIVE = ToolAnnotations(idempotentHint=False, destructiveHint=False)
_DESTRUCTIVE = ToolAnnotations(destructiveHint=True, idempotentHint=False)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool(
    description=(
        "Save a text note with optional title and tags. "
        "Tags should be provided by the AI client."
    ),
    annotations=_ADDITIVE,
)
async def save_note(
    body: Annotated[str, Field(description="Required body text of the note.")],
    title: Annotated[Optional[str], Field(description="Optional title for the note.")] = None,
    tags: Annotated[Optional[list[str]], Field(
        description='Optional tags. Example: ["recipes", "italian"]',
    )] = None,
) -> str:
    """Save a note."""
    if not body or not body.strip():
        return "Error: Body text is required for notes"
    async with _lock:
        result = _get_store().save_note(body, title=title, tags=tags)
    return format_save_result(result)


@mcp.tool(
    description=(
        "Save a URL with optional title, comment, and tags. "
        "Prevents duplicates: saving a known URL merges new tags into the existing link."
    ),
    annotations=_IDEMPOTENT,
)
async def save_link(
    url: Annotated[str, Field(description="Required URL to save.")],
    title: Annotated[Optional[str], Field(description="Optional title for the link.")] = None,
    comment: Annotated[Optional[str], Field(description="Optional comment about the link.")] = None,
    tags: Annotated[Optional[list[str]], Field(
        description="Optional tags (provided by the AI client).",
    )] = None,
) -> str:
    """Save a link."""
    if not url or not url.strip():
        return "Error: URL is required for links"
    if not is_absolute_url(url):
        return "Error: Invalid URL format"
    async with _lock:
        result = _get_store().save_link(url, title=title, comment=comment, tags=tags)
    return format_save_result(result)


@mcp.tool(
    description=(
        "Search saved items using query text, tags, and/or date range. "
        "Returns both notes and links, newest first."
    ),
    annotations=_READ_ONLY,
)
async def search(
    query: Annotated[Optional[str], Field(
        description="Free-text search query (matches title, body and URL).",
    )] = None,
    tags: Annotated[Optional[list[str]], Field(
        description="Filter by tags (items must have at least one matching tag).",
    )] = None,
    date_from: Annotated[Optional[str], Field(
        description="Only items created from this date (ISO 8601).",
    )] = None,
    date_to: Annotated[Optional[str], Field(
        description="Only items created until this date (ISO 8601, a bare date includes the whole day).",
    )] = None,
) -> str:
    """Search items."""
    async with _lock:
        try:
            results = _get_store().search_items(
                query=query, tags=tags, date_from=date_from, date_to=date_to,
            )
        except ValueError as e:
            return f"Error: {e}"
    if not results:
        return "No items found matching your search criteria."
    return format_items(results)


@mcp.tool(
    description=(
        "List recently saved items from the last N days, ordered newest to oldest."
    ),
    annotations=_READ_ONLY,
)
async def list_recent(
    days: Annotated[Optional[float], Field(
        description="Number of days to look back (default: 7).",
    )] = None,
    limit: Annotated[Optional[int], Field(
        description="Maximum number of results to return.",
    )] = None,
) -> str:
    """List recent items."""
    async with _lock:
        store = _get_store()
        window = days if days is not None else _default_days()
        results = store.get_recent_items(window, limit)
    if not results:
        return f"No items found from the last {window:g} day(s)."
    return format_items(results)


@mcp.tool(
    description="Retrieve a saved item by its ID.",
    annotations=_READ_ONLY,
)
async def get_item(
    id: Annotated[str, Field(description="The ID of the item.")],
) -> str:
    """Retrieve one item."""
    async with _lock:
        item = _get_store().get_item(id)
    if item is None:
        return f"Not found: {id}"
    return format_item(item)


@mcp.tool(
    description=(
        "Delete a saved item by its ID. "
        "Returns a confirmation, or an error if the ID is not found."
    ),
    annotations=_DESTRUCTIVE,
)
async def delete_item(
    id: Annotated[str, Field(description="The unique ID of the item to delete.")],
) -> str:
    """Delete an item."""
    async with _lock:
        deleted = _get_store().delete_item(id)
    if not deleted:
        return f'Error: Item with ID "{id}" not found.'
    return f"🗑️ Item deleted successfully\nID: {id}"


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Run the MCP stdio server."""
    import os
    import signal
    # The stdin reader shields its blocking readline from cancellation,
    # so the first Ctrl+C would otherwise be swallowed.
    signal.signal(signal.SIGINT, lambda *_: os._exit(130))

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
