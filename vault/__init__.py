"""
Content Vault

A personal store for short notes and links, with URL deduplication and
text, tag and date-range search.

Quick Start:
    from vault import ItemStore

    store = ItemStore("~/.content-vault")
    store.initialize()
    store.save_item("link", url="https://example.com", tags=["web"])
    results = store.search_items(query="example")

CLI Usage:
    vault link https://example.com --tag web
    vault search example
    vault list --days 3

Default Store:
    ~/.content-vault/ (created automatically).
    Override with VAULT_STORE_PATH, or set VAULT_EPHEMERAL=1 to keep the
    store in the system temp directory.

Environment Variables:
    VAULT_STORE_PATH  - Override default store location
    VAULT_EPHEMERAL   - Use a temp-directory store
    VAULT_VERBOSE     - Debug logging for the CLI
"""

from .item_store import ItemStore
from .types import Item, SaveResult, normalize_url

__version__ = "0.1.0"
__all__ = [
    "ItemStore",
    "Item",
    "SaveResult",
    "normalize_url",
]
