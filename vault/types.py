"""
Data types for the content vault.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Optional
from urllib.parse import urlsplit


KIND_NOTE = "note"
KIND_LINK = "link"
KINDS = frozenset({KIND_NOTE, KIND_LINK})


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS.mmmZ."""
    return format_utc_timestamp(datetime.now(timezone.utc))


def format_utc_timestamp(dt: datetime) -> str:
    """Format a datetime as a canonical UTC timestamp (millisecond precision).

    Naive datetimes are taken to be UTC already.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime.

    Handles the canonical format as well as '+00:00' suffixes, naive
    timestamps (assumed UTC) and bare dates.
    """
    ts = ts.strip().replace("Z", "+00:00").replace("z", "+00:00")
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_date_only(value: str) -> bool:
    """True for a bare calendar date like '2024-03-01' (no time component)."""
    value = value.strip()
    if len(value) != 10:
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def coerce_bound(value: "str | date | datetime", *, end_of_day: bool = False) -> datetime:
    """Turn a date filter value into a UTC datetime bound.

    Dates (or date-only strings) resolve to the start of that UTC day, or
    to 23:59:59.999 when ``end_of_day`` is set.

    Raises:
        ValueError: If a string value cannot be parsed
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        day = value
    elif is_date_only(value):
        day = date.fromisoformat(value.strip())
    else:
        try:
            return parse_utc_timestamp(value)
        except ValueError:
            raise ValueError(
                f"Invalid date: {value!r}. Use ISO 8601 (2024-03-01 or 2024-03-01T12:00:00Z)"
            ) from None
    if end_of_day:
        return datetime.combine(day, time(23, 59, 59, 999000), tzinfo=timezone.utc)
    return datetime.combine(day, time(0, 0), tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def normalize_tags(tags: Optional[Iterable[str]]) -> list[str]:
    """Lowercase and trim tags, dropping empties and duplicates.

    First occurrence wins, so display order follows insertion order.
    """
    result: list[str] = []
    seen: set[str] = set()
    for tag in tags or ():
        if not isinstance(tag, str):
            continue
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


# ---------------------------------------------------------------------------
# URL normalization (duplicate detection only, never for display)
# ---------------------------------------------------------------------------

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Canonical form of a URL for duplicate comparison.

    Lowercases scheme, host, path and query, strips one trailing slash
    from the path and drops the fragment and any userinfo. Default ports
    are dropped. Input that does not parse as an absolute URL degrades to
    its trimmed, lower-cased literal.
    """
    raw = url.strip()
    try:
        parts = urlsplit(raw)
        host = parts.hostname or ""
        port = parts.port
    except ValueError:
        return raw.lower()
    if not parts.scheme or not host:
        return raw.lower()

    scheme = parts.scheme.lower()
    if port and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"

    path = parts.path[:-1] if parts.path.endswith("/") else parts.path
    query = f"?{parts.query}" if parts.query else ""
    return f"{scheme}://{host}{path}{query}".lower()


def is_absolute_url(url: str) -> bool:
    """True if ``url`` parses with both a scheme and a host."""
    try:
        parts = urlsplit(url.strip())
        return bool(parts.scheme and parts.hostname)
    except ValueError:
        return False


def clean_text(value: Optional[str]) -> Optional[str]:
    """Trim a text field, mapping blank values to None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Item:
    """
    A note or link stored in the vault.

    This is a read-only snapshot, tags included. The store replaces the
    whole record when a duplicate link is merged into it.

    Attributes:
        id: Opaque unique identifier, assigned at creation
        kind: "note" or "link" (serialized as "type")
        title: Optional display title
        body: Note text or link commentary
        url: Link target as given by the caller (links only)
        tags: Lowercase tags in insertion order
        created_at: UTC timestamp when first saved
        updated_at: UTC timestamp of the last duplicate merge, if any
    """
    id: str
    kind: str
    created_at: str
    title: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None
    tags: tuple[str, ...] = ()
    updated_at: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def created(self) -> datetime:
        """Creation time as an aware UTC datetime."""
        return parse_utc_timestamp(self.created_at)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the snapshot object shape (optional keys omitted)."""
        d: dict[str, Any] = {"id": self.id, "type": self.kind}
        if self.title is not None:
            d["title"] = self.title
        if self.body is not None:
            d["body"] = self.body
        if self.url is not None:
            d["url"] = self.url
        d["tags"] = list(self.tags)
        d["createdAt"] = self.created_at
        if self.updated_at is not None:
            d["updatedAt"] = self.updated_at
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Item":
        """Deserialize a snapshot object.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        if not isinstance(d, dict):
            raise ValueError(f"Item must be an object, got {type(d).__name__}")
        item_id = d.get("id")
        if not isinstance(item_id, str) or not item_id:
            raise ValueError("Item has no id")
        kind = d.get("type")
        if not isinstance(kind, str) or kind not in KINDS:
            raise ValueError(f"Item {item_id} has invalid type: {kind!r}")
        created_at = d.get("createdAt")
        if not isinstance(created_at, str):
            raise ValueError(f"Item {item_id} has no createdAt")
        parse_utc_timestamp(created_at)

        url = _optional_str(d.get("url"))
        if kind == KIND_LINK and not (url and url.strip()):
            raise ValueError(f"Link {item_id} has no url")
        if kind == KIND_NOTE:
            url = None

        tags = d.get("tags")
        return cls(
            id=item_id,
            kind=kind,
            created_at=created_at,
            title=_optional_str(d.get("title")),
            body=_optional_str(d.get("body")),
            url=url,
            tags=tuple(normalize_tags(tags if isinstance(tags, list) else [])),
            updated_at=_optional_str(d.get("updatedAt")),
        )

    def __str__(self) -> str:
        label = self.title or self.url or (self.body or "")[:60]
        return f"{self.id} [{self.kind}]: {label}"


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class SaveResult:
    """Outcome of ItemStore.save_item()."""
    item: Item
    is_duplicate: bool

    def to_dict(self) -> dict[str, Any]:
        return {"item": self.item.to_dict(), "isDuplicate": self.is_duplicate}
