"""Tests for the vault CLI commands and output formatting."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from typer.testing import CliRunner

from vault.cli import app, format_date, format_save_confirmation
from vault.types import Item


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path):
    """Run the CLI against a store under tmp_path."""
    store_dir = tmp_path / "store"

    def _invoke(*args):
        return runner.invoke(app, ["--store", str(store_dir), *args])
    _invoke.store_dir = store_dir
    return _invoke


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


class TestFormatDate:
    NOW = datetime(2024, 6, 20, 15, 0, tzinfo=timezone.utc)

    def test_today(self):
        assert format_date(self.NOW - timedelta(hours=2), self.NOW).startswith("Today, ")

    def test_yesterday(self):
        assert format_date(self.NOW - timedelta(days=1, hours=1), self.NOW) == "Yesterday"

    def test_days_ago(self):
        assert format_date(self.NOW - timedelta(days=3), self.NOW) == "3 days ago"

    def test_older_shows_month_day(self):
        assert format_date(datetime(2024, 1, 5, 12, tzinfo=timezone.utc), self.NOW) == "Jan 5"

    def test_future_is_today(self):
        assert format_date(self.NOW + timedelta(hours=1), self.NOW).startswith("Today, ")


def test_save_confirmation_without_title():
    item = Item(id="n1", kind="note", body="text", tags=[],
                created_at="2024-01-01T00:00:00.000Z")
    text = format_save_confirmation(item)
    assert "Title" not in text
    assert "Tags: none" in text
    assert "ID: n1" in text


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestNoteAndLink:
    def test_note(self, invoke):
        result = invoke("note", "Call the plumber", "--title", "Chores", "--tag", "home,Todo")
        assert result.exit_code == 0, result.output
        assert "✔ Saved to Content Vault" in result.output
        assert "Tags: home, todo" in result.output
        data = json.loads((invoke.store_dir / "items.json").read_text())
        assert data[0]["body"] == "Call the plumber"

    def test_blank_note(self, invoke):
        result = invoke("note", "  ")
        assert result.exit_code == 1
        assert "Body text is required" in result.output

    def test_link_then_duplicate(self, invoke):
        first = invoke("link", "https://example.com/a/", "--tag", "web")
        assert first.exit_code == 0, first.output
        second = invoke("link", "https://EXAMPLE.com/a", "--tag", "ref", "--comment", "later")
        assert second.exit_code == 0, second.output
        assert "already saved" in second.output
        assert "Tags: web · ref" in second.output
        data = json.loads((invoke.store_dir / "items.json").read_text())
        assert len(data) == 1
        assert data[0]["body"] == "later"

    def test_invalid_link(self, invoke):
        result = invoke("link", "example")
        assert result.exit_code == 1
        assert "Invalid URL format" in result.output

    def test_json_output(self, invoke):
        result = invoke("--json", "link", "https://example.com")
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["isDuplicate"] is False
        assert payload["item"]["type"] == "link"

    def test_writes_config(self, invoke):
        invoke("note", "x")
        assert (invoke.store_dir / "vault.toml").exists()


class TestQueries:
    @pytest.fixture(autouse=True)
    def seed(self, invoke):
        invoke("note", "Python packaging notes", "--tag", "python")
        invoke("link", "https://docs.example.com", "--title", "Docs", "--tag", "web")

    def test_search_query(self, invoke):
        result = invoke("search", "packaging")
        assert result.exit_code == 0, result.output
        assert "Python packaging notes" in result.output
        assert "Docs" not in result.output

    def test_search_tag(self, invoke):
        result = invoke("--json", "search", "--tag", "web")
        items = json.loads(result.output)
        assert [item["title"] for item in items] == ["Docs"]

    def test_search_no_results(self, invoke):
        result = invoke("search", "--to", "2000-01-01")
        assert result.output.strip() == "No items found matching your search criteria."

    def test_search_bad_date(self, invoke):
        result = invoke("search", "--from", "soon")
        assert result.exit_code == 1
        assert "Invalid date" in result.output

    def test_search_limit(self, invoke):
        result = invoke("--json", "search", "-n", "1")
        assert len(json.loads(result.output)) == 1

    def test_list_recent(self, invoke):
        result = invoke("--json", "list")
        items = json.loads(result.output)
        assert sorted(item["type"] for item in items) == ["link", "note"]
        assert items[0]["createdAt"] >= items[1]["createdAt"]

    def test_list_limit(self, invoke):
        result = invoke("--json", "list", "--limit", "1")
        assert len(json.loads(result.output)) == 1

    def test_tags(self, invoke):
        result = invoke("tags")
        assert result.output.split() == ["python", "web"]

    def test_get_and_delete(self, invoke):
        items = json.loads(invoke("--json", "list").output)
        item_id = items[0]["id"]

        shown = invoke("get", item_id)
        assert shown.exit_code == 0
        assert f"ID: {item_id}" in shown.output

        deleted = invoke("del", item_id)
        assert deleted.exit_code == 0
        assert f"Deleted {item_id}" in deleted.output

        missing = invoke("get", item_id)
        assert missing.exit_code == 1
        assert f"Not found: {item_id}" in missing.output

    def test_delete_unknown(self, invoke):
        result = invoke("del", "missing")
        assert result.exit_code == 1
        assert "Not found: missing" in result.output


def test_recent_days_from_config(invoke):
    invoke.store_dir.mkdir(parents=True)
    (invoke.store_dir / "vault.toml").write_text("[recent]\ndays = 30\n")
    assert invoke("list").output.strip() == "No items found from the last 30 day(s)."


def test_invalid_config(invoke):
    invoke.store_dir.mkdir(parents=True)
    (invoke.store_dir / "vault.toml").write_text("[store]\nversion = 99\n")
    result = invoke("list")
    assert result.exit_code == 1
    assert "newer than supported" in result.output
