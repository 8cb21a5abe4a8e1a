"""Tests for the local budget draft store."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from tests.conftest import make_budget
from subtracker.core.drafts import DraftStore


@pytest.fixture
def store(tmp_path):
    """DraftStore backed by a temp file."""
    return DraftStore(drafts_file=str(tmp_path / "drafts.json"))


class TestSaveAndLoad:
    def test_round_trip_keeps_typed_text(self, store):
        store.save_draft("user-1", make_budget("5,000", housing="1200", food="abc"))
        draft = store.load_draft("user-1")
        assert draft.income == "5,000"
        assert draft.categories == {"housing": "1200", "food": "abc"}
        assert draft.currency == "USD"

    def test_numbers_stored_as_text(self, store):
        store.save_draft("user-1", make_budget(Decimal("4000.50"), savings=400, other=None))
        draft = store.load_draft("user-1")
        assert draft.income == "4000.50"
        assert draft.categories == {"savings": "400", "other": None}

    def test_returns_timestamp(self, store):
        stamp = store.save_draft(
            "user-1", make_budget(), saved_at=datetime(2025, 1, 17, 12, 0, tzinfo=timezone.utc)
        )
        assert stamp == "2025-01-17T12:00:00+00:00"
        assert store.saved_at("user-1") == stamp

    def test_latest_save_wins(self, store):
        store.save_draft("user-1", make_budget("1000"))
        store.save_draft("user-1", make_budget("2000"))
        assert store.load_draft("user-1").income == "2000"

    def test_missing_draft(self, store):
        assert store.load_draft("nobody") is None
        assert store.saved_at("nobody") is None


class TestPersistence:
    def test_persists_to_disk(self, tmp_path):
        path = tmp_path / "drafts.json"
        store = DraftStore(drafts_file=str(path))
        store.save_draft("user-1", make_budget("3000", currency="EUR"))

        data = json.loads(path.read_text())
        assert data["user-1"]["income"] == "3000"
        assert data["user-1"]["currency"] == "EUR"

        reloaded = DraftStore(drafts_file=str(path))
        assert reloaded.load_draft("user-1").currency == "EUR"

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "drafts.json"
        DraftStore(drafts_file=str(path)).save_draft("user-1", make_budget())
        assert path.exists()

    def test_corrupt_file_ignored(self, tmp_path):
        path = tmp_path / "drafts.json"
        path.write_text("{not json")
        store = DraftStore(drafts_file=str(path))
        assert store.load_draft("user-1") is None


class TestDiscard:
    def test_discard_existing(self, store):
        store.save_draft("user-1", make_budget())
        assert store.discard_draft("user-1") is True
        assert store.load_draft("user-1") is None

    def test_discard_missing(self, store):
        assert store.discard_draft("user-1") is False

    def test_discard_keeps_other_users(self, store):
        store.save_draft("user-1", make_budget())
        store.save_draft("user-2", make_budget())
        store.discard_draft("user-1")
        assert store.load_draft("user-2") is not None
