"""
Item store backed by a single JSON snapshot file.

The store holds the full collection in memory and mirrors it to disk
after every mutation. It is the source of truth for:
- Item identity
- URL deduplication (merge-on-save)
- Tag, text and date-range queries

Durability is best-effort. A missing, read-only or ephemeral filesystem
degrades the store to memory-only operation instead of failing the caller.
The store does no locking; callers serialize access.
"""

import json
import logging
import os
import tempfile
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

from .types import (
    KIND_LINK,
    KIND_NOTE,
    KINDS,
    Item,
    SaveResult,
    clean_text,
    coerce_bound,
    format_utc_timestamp,
    normalize_tags,
    normalize_url,
)

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "items.json"
DEFAULT_RECENT_DAYS = 7


class ItemStore:
    """
    In-memory collection of notes and links, persisted as a JSON array.

    Usage:
        store = ItemStore(Path("~/.content-vault").expanduser())
        store.initialize()
        result = store.save_item("link", url="https://example.com", tags=["web"])
    """

    normalize_url = staticmethod(normalize_url)

    def __init__(self, store_path: Path | str, snapshot_name: str = SNAPSHOT_FILENAME):
        """
        Args:
            store_path: Directory holding the snapshot file
            snapshot_name: File name of the snapshot within store_path
        """
        self._store_path = Path(store_path).expanduser()
        self._snapshot_path = self._store_path / snapshot_name
        self._items: list[Item] = []
        self._loaded = False
        self._durable = True

    @property
    def store_path(self) -> Path:
        return self._store_path

    @property
    def snapshot_path(self) -> Path:
        return self._snapshot_path

    @property
    def durable(self) -> bool:
        """False once the store has fallen back to memory-only operation."""
        return self._durable

    def _now(self) -> datetime:
        """Current time (aware, UTC)."""
        return datetime.now(timezone.utc)

    # -------------------------------------------------------------------------
    # Load / Persist
    # -------------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Create the storage directory and load the snapshot.

        Never raises for environmental problems: a malformed snapshot loads
        as an empty collection, and an unreadable directory leaves the
        store running in memory only.
        """
        self._items = []
        self._loaded = True
        try:
            self._store_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create store directory %s (memory only): %s",
                           self._store_path, e)
            self._durable = False
            return

        try:
            raw_bytes = self._snapshot_path.read_bytes()
        except FileNotFoundError:
            logger.debug("No snapshot at %s, starting empty", self._snapshot_path)
            return
        except OSError as e:
            logger.warning("Cannot read snapshot %s (memory only): %s", self._snapshot_path, e)
            self._durable = False
            return

        try:
            # UnicodeDecodeError is a ValueError; deep nesting overflows the decoder
            data = json.loads(raw_bytes.decode("utf-8"))
        except (ValueError, RecursionError) as e:
            logger.warning("Malformed snapshot %s, starting empty: %s", self._snapshot_path, e)
            return
        if not isinstance(data, list):
            logger.warning("Snapshot %s is not a JSON array, starting empty", self._snapshot_path)
            return

        seen: set[str] = set()
        for index, raw in enumerate(data):
            try:
                item = Item.from_dict(raw)
            except ValueError as e:
                logger.warning("Skipping snapshot entry %d: %s", index, e)
                continue
            if item.id in seen:
                logger.warning("Skipping snapshot entry %d: duplicate id %s", index, item.id)
                continue
            seen.add(item.id)
            self._items.append(item)

        logger.debug("Loaded %d items from %s", len(self._items), self._snapshot_path)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.initialize()

    def _persist(self) -> None:
        """
        Write the whole collection atomically.

        Writes to a temp file in the snapshot directory, fsyncs, then
        renames over the snapshot. On OSError the store switches to
        memory-only durability for the rest of its lifetime.
        """
        if not self._durable:
            logger.debug("Memory-only store, skipping write of %d items", len(self._items))
            return

        payload = json.dumps([item.to_dict() for item in self._items],
                             ensure_ascii=False, indent=2)
        tmp_path = None
        try:
            self._store_path.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=self._snapshot_path.name + ".",
                suffix=".tmp",
                dir=str(self._store_path),
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._snapshot_path)
            tmp_path = None
        except OSError as e:
            logger.warning("Cannot write snapshot %s (continuing in memory only): %s",
                           self._snapshot_path, e)
            self._durable = False
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def _generate_id(self) -> str:
        existing = {item.id for item in self._items}
        while True:
            candidate = uuid.uuid4().hex[:16]
            if candidate not in existing:
                return candidate

    def find_duplicate(self, url: str) -> Optional[Item]:
        """Return the stored link whose URL normalizes like ``url``, if any."""
        self._ensure_loaded()
        normalized = normalize_url(url)
        for item in self._items:
            if item.kind == KIND_LINK and item.url and normalize_url(item.url) == normalized:
                return item
        return None

    def save_item(
        self,
        kind: str,
        *,
        title: Optional[str] = None,
        body: Optional[str] = None,
        url: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> SaveResult:
        """
        Save a note, or a link with duplicate detection.

        A link whose normalized URL is already stored is merged into the
        existing item: tags are unioned and an empty title/body is
        backfilled. Existing values are never overwritten. A merge that
        changes nothing does not write.

        Args:
            kind: "note" or "link"
            title: Optional title
            body: Note text, or commentary for a link
            url: Link target (required for links, ignored for notes)
            tags: Tags; lowercased, trimmed and deduplicated

        Returns:
            SaveResult with the stored item and whether it was a duplicate

        Raises:
            ValueError: For an unknown kind or a link without a URL
        """
        if kind not in KINDS:
            raise ValueError(f"Invalid item type: {kind!r}. Must be 'note' or 'link'")
        title = clean_text(title)
        body = clean_text(body)
        url = clean_text(url) if kind == KIND_LINK else None
        new_tags = normalize_tags(tags)
        if kind == KIND_LINK and url is None:
            raise ValueError("URL is required for links")

        self._ensure_loaded()

        if kind == KIND_LINK:
            existing = self.find_duplicate(url)
            if existing is not None:
                return SaveResult(self._merge(existing, title, body, new_tags), True)

        item = Item(
            id=self._generate_id(),
            kind=kind,
            created_at=format_utc_timestamp(self._now()),
            title=title,
            body=body,
            url=url,
            tags=new_tags,
        )
        self._items.append(item)
        self._persist()
        logger.info("Saved %s %s", kind, item.id)
        return SaveResult(item, False)

    def _merge(
        self,
        existing: Item,
        title: Optional[str],
        body: Optional[str],
        tags: list[str],
    ) -> Item:
        """Merge a duplicate link into the stored item and persist if it changed."""
        known = {t.lower() for t in existing.tags}
        added = [t for t in tags if t not in known]
        backfill_title = title if not existing.title and title else None
        backfill_body = body if not existing.body and body else None

        if not added and backfill_title is None and backfill_body is None:
            logger.debug("Duplicate link %s unchanged", existing.id)
            return existing

        merged = replace(
            existing,
            tags=existing.tags + tuple(added),
            title=backfill_title or existing.title,
            body=backfill_body or existing.body,
            updated_at=format_utc_timestamp(self._now()),
        )
        index = next(i for i, item in enumerate(self._items) if item.id == existing.id)
        self._items[index] = merged
        self._persist()
        logger.info("Merged duplicate link into %s (+%d tags)", existing.id, len(added))
        return merged

    def save_note(self, body: str, *, title: Optional[str] = None,
                  tags: Optional[Iterable[str]] = None) -> SaveResult:
        return self.save_item(KIND_NOTE, title=title, body=body, tags=tags)

    def save_link(self, url: str, *, title: Optional[str] = None,
                  comment: Optional[str] = None,
                  tags: Optional[Iterable[str]] = None) -> SaveResult:
        return self.save_item(KIND_LINK, url=url, title=title, body=comment, tags=tags)

    def delete_item(self, id: str) -> bool:
        """
        Delete an item by ID.

        Returns:
            True if the item existed and was removed
        """
        self._ensure_loaded()
        for index, item in enumerate(self._items):
            if item.id == id:
                del self._items[index]
                self._persist()
                logger.info("Deleted %s", id)
                return True
        return False

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get_item(self, id: str) -> Optional[Item]:
        """Get an item by ID."""
        self._ensure_loaded()
        for item in self._items:
            if item.id == id:
                return item
        return None

    def get_all_items(self) -> list[Item]:
        """All items, newest first."""
        self._ensure_loaded()
        return _newest_first(self._items)

    def search_items(
        self,
        *,
        query: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        date_from: "str | date | datetime | None" = None,
        date_to: "str | date | datetime | None" = None,
    ) -> list[Item]:
        """
        Filter items. All given filters must match; empty ones are ignored.

        Args:
            query: Case-insensitive substring of title, body or url
            tags: Item must carry at least one of these tags
            date_from: Created at or after this instant (a bare date means
                the start of that UTC day)
            date_to: Created at or before this instant (a bare date is
                inclusive through the end of that UTC day)

        Returns:
            Matching items, newest first

        Raises:
            ValueError: If a date filter cannot be parsed
        """
        self._ensure_loaded()
        lower_bound = coerce_bound(date_from) if date_from else None
        upper_bound = coerce_bound(date_to, end_of_day=True) if date_to else None
        tag_set = set(normalize_tags(tags))
        needle = query.lower() if query else None

        results = []
        for item in self._items:
            if needle is not None and not _matches_text(item, needle):
                continue
            if tag_set and not any(t.lower() in tag_set for t in item.tags):
                continue
            if lower_bound is not None and item.created < lower_bound:
                continue
            if upper_bound is not None and item.created > upper_bound:
                continue
            results.append(item)
        return _newest_first(results)

    def get_recent_items(self, days: float = DEFAULT_RECENT_DAYS,
                         limit: Optional[int] = None) -> list[Item]:
        """
        Items created within the last ``days`` days, newest first.

        Args:
            days: Size of the look-back window
            limit: Maximum number of items (ignored unless positive)
        """
        self._ensure_loaded()
        now = self._now()
        cutoff = now - timedelta(days=days)
        results = _newest_first(
            item for item in self._items if cutoff <= item.created <= now
        )
        if limit is not None and limit > 0:
            results = results[:limit]
        return results

    def list_tags(self) -> list[str]:
        """Sorted distinct tags across all items."""
        self._ensure_loaded()
        return sorted({tag for item in self._items for tag in item.tags})

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._items)


def _matches_text(item: Item, needle: str) -> bool:
    return any(
        field is not None and needle in field.lower()
        for field in (item.title, item.body, item.url)
    )


def _newest_first(items: Iterable[Item]) -> list[Item]:
    # sorted() is stable under reverse=True, so ties keep insertion order
    return sorted(items, key=lambda item: item.created, reverse=True)
