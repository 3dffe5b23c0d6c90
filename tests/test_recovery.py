"""Tests for environmental failure modes.

Covers the conditions the store must survive without raising:
- Corrupt or unexpected snapshot contents
- Storage directory that cannot be created or read
- Snapshot writes failing midway (read-only / ephemeral filesystems)
"""

import json
import logging

import pytest

from vault.item_store import ItemStore


# ---------------------------------------------------------------------------
# Snapshot contents
# ---------------------------------------------------------------------------


class TestMalformedSnapshot:
    @pytest.mark.parametrize("text", [
        "{not json",
        "",
        '{"items": []}',
        '"just a string"',
        "null",
        b'[{"id": "a", "title": "\xff\xfe"}]',
        "[" * 200000,
    ], ids=["truncated", "empty", "object", "string", "null", "bad-utf8", "deep-nesting"])
    def test_starts_empty(self, store_path, write_snapshot, text, caplog):
        write_snapshot(text)
        s = ItemStore(store_path)
        with caplog.at_level(logging.WARNING, logger="vault.item_store"):
            s.initialize()
        assert s.get_all_items() == []
        assert s.durable is True
        assert "starting empty" in caplog.text

    def test_next_save_replaces_corrupt_file(self, store_path, write_snapshot):
        path = write_snapshot("{not json")
        s = ItemStore(store_path)
        s.initialize()
        s.save_note("fresh")
        assert len(json.loads(path.read_text())) == 1

    def test_bad_entries_skipped(self, store_path, write_snapshot, make_record, caplog):
        write_snapshot([
            make_record("good"),
            "not an object",
            {"id": "no-type", "createdAt": "2024-01-01T00:00:00Z", "tags": []},
            {"id": "list-type", "type": [], "createdAt": "2024-01-01T00:00:00Z"},
            {"id": "dict-type", "type": {}, "createdAt": "2024-01-01T00:00:00Z"},
            make_record("bad-link", kind="link"),
            make_record("good", body="second copy"),
            make_record("also-good", kind="link", url="https://example.com"),
        ])
        s = ItemStore(store_path)
        with caplog.at_level(logging.WARNING, logger="vault.item_store"):
            s.initialize()
        assert sorted(item.id for item in s.get_all_items()) == ["also-good", "good"]
        assert s.get_item("good").body is None
        assert "duplicate id good" in caplog.text

    def test_dirty_tags_cleaned_on_load(self, store_path, write_snapshot, make_record):
        write_snapshot([make_record("n", tags=["  AI ", "", "ai", "ml"])])
        s = ItemStore(store_path)
        assert s.get_item("n").tags == ("ai", "ml")

    def test_missing_file_is_empty(self, store_path):
        s = ItemStore(store_path)
        s.initialize()
        assert s.get_all_items() == []
        assert store_path.is_dir()


# ---------------------------------------------------------------------------
# Unavailable storage
# ---------------------------------------------------------------------------


class TestUnavailableStorage:
    def test_directory_cannot_be_created(self, tmp_path):
        blocker = tmp_path / "occupied"
        blocker.write_text("a file where the directory should be")
        s = ItemStore(blocker / "vault")
        s.initialize()
        assert s.durable is False

        result = s.save_note("kept in memory")
        assert result.is_duplicate is False
        assert s.get_item(result.item.id) == result.item

    def test_snapshot_unreadable(self, store_path, write_snapshot, monkeypatch):
        write_snapshot([])

        def fail_read(self, *args, **kwargs):
            raise PermissionError("denied")

        monkeypatch.setattr("pathlib.Path.read_bytes", fail_read)
        s = ItemStore(store_path)
        s.initialize()
        assert s.get_all_items() == []
        assert s.durable is False

    def test_write_failure_keeps_memory_state(self, store, monkeypatch, caplog):
        def fail_mkstemp(*args, **kwargs):
            raise OSError(30, "Read-only file system")

        monkeypatch.setattr("vault.item_store.tempfile.mkstemp", fail_mkstemp)
        with caplog.at_level(logging.WARNING, logger="vault.item_store"):
            first = store.save_link("https://example.com", tags=["a"])
        assert store.durable is False
        assert "memory only" in caplog.text

        merged = store.save_link("https://example.com", tags=["b"])
        assert merged.is_duplicate is True
        assert merged.item.tags == ("a", "b")
        assert store.delete_item(first.item.id) is True
        assert len(store) == 0

    def test_memory_only_stops_writing(self, store, monkeypatch):
        calls = []

        def fail_mkstemp(*args, **kwargs):
            calls.append(args)
            raise OSError(28, "No space left on device")

        monkeypatch.setattr("vault.item_store.tempfile.mkstemp", fail_mkstemp)
        store.save_note("a")
        store.save_note("b")
        assert len(calls) == 1


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_failed_rename_leaves_previous_snapshot(self, store, monkeypatch):
        store.save_note("committed")
        before = store.snapshot_path.read_text()

        def fail_replace(src, dst):
            raise OSError(5, "I/O error")

        monkeypatch.setattr("vault.item_store.os.replace", fail_replace)
        store.save_note("lost on disk")

        assert store.snapshot_path.read_text() == before
        assert [p.name for p in store.store_path.iterdir()] == ["items.json"]

    def test_failed_write_removes_temp_file(self, store, monkeypatch):
        def fail_fsync(fd):
            raise OSError(5, "I/O error")

        monkeypatch.setattr("vault.item_store.os.fsync", fail_fsync)
        store.save_note("x")

        assert not store.snapshot_path.exists()
        assert list(store.store_path.iterdir()) == []
