"""
Shared pytest fixtures for vault tests.

Stores live under tmp_path; snapshots can be written directly to seed a
store with items of known age.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from vault.item_store import ItemStore
from vault.types import format_utc_timestamp


def days_ago(days: float) -> str:
    """Canonical timestamp for a moment ``days`` days in the past."""
    return format_utc_timestamp(datetime.now(timezone.utc) - timedelta(days=days))


def make_record(id: str, kind: str = "note", created_at: str = "2024-01-01T00:00:00.000Z",
                **fields) -> dict:
    """Build a snapshot object."""
    record = {"id": id, "type": kind, "tags": fields.pop("tags", []), "createdAt": created_at}
    record.update(fields)
    return record


@pytest.fixture
def store_path(tmp_path) -> Path:
    return tmp_path / "vault"


@pytest.fixture
def write_snapshot(store_path):
    """Write a list of records (or raw text or bytes) as the store's snapshot."""
    def _write(records) -> Path:
        store_path.mkdir(parents=True, exist_ok=True)
        path = store_path / "items.json"
        if isinstance(records, bytes):
            path.write_bytes(records)
        elif isinstance(records, str):
            path.write_text(records, encoding="utf-8")
        else:
            path.write_text(json.dumps(records), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def store(store_path) -> ItemStore:
    """An initialized, empty store."""
    s = ItemStore(store_path)
    s.initialize()
    return s


@pytest.fixture
def reopen(store_path):
    """Open a fresh store instance over the same directory."""
    def _reopen() -> ItemStore:
        s = ItemStore(store_path)
        s.initialize()
        return s
    return _reopen


@pytest.fixture(name="days_ago")
def days_ago_fixture():
    return days_ago


@pytest.fixture(name="make_record")
def make_record_fixture():
    return make_record
