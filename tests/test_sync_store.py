"""Tests for sync/store.py — document persistence and schema upgrade."""

import json

import pytest

from command_tracker.sync.models import Document, Subscription
from command_tracker.sync.store import (
    DocumentFormatError,
    DocumentStore,
    parse_document,
    serialize_document,
    upgrade_payload,
)


class TestUpgradePayload:
    """Tests for upgrade_payload()."""

    def test_bare_list_becomes_v1_document(self):
        assert upgrade_payload([{"id": "1"}]) == {
            "version": 1,
            "items": [{"id": "1"}],
            "subscriptions": [],
        }

    def test_object_without_version(self):
        assert upgrade_payload({"items": []}) == {
            "version": 1,
            "items": [],
            "subscriptions": [],
        }

    def test_null_lists_default_to_empty(self):
        result = upgrade_payload({"items": None, "subscriptions": None})
        assert result["items"] == []
        assert result["subscriptions"] == []

    def test_newer_version_rejected(self):
        with pytest.raises(DocumentFormatError, match="Unsupported"):
            upgrade_payload({"version": 99, "items": []})

    def test_scalar_rejected(self):
        with pytest.raises(DocumentFormatError):
            upgrade_payload("hello")

    def test_non_list_items_rejected(self):
        with pytest.raises(DocumentFormatError):
            upgrade_payload({"items": {"id": "1"}})


class TestParseDocument:
    """Tests for parse_document()."""

    def test_invalid_json(self):
        with pytest.raises(DocumentFormatError, match="Invalid JSON"):
            parse_document("{not json")

    def test_legacy_array(self):
        doc = parse_document('[{"id": 1, "name": "a", "content": "b"}]')
        assert [e.id for e in doc.items] == ["1"]
        assert doc.subscriptions == []

    def test_invalid_entries_dropped(self):
        doc = parse_document(
            json.dumps(
                {
                    "items": [
                        {"id": "1", "name": "ok", "content": "x"},
                        {"id": "2", "name": "no content"},
                    ],
                    "subscriptions": [{"id": "s", "username": "a"}],
                }
            )
        )
        assert [e.id for e in doc.items] == ["1"]
        assert doc.subscriptions == []


class TestDocumentStore:
    """Tests for DocumentStore load/save."""

    def test_missing_file_loads_empty(self, store):
        assert store.load() == Document()

    def test_empty_file_loads_empty(self, store):
        store.storage_dir.mkdir(parents=True)
        store.path.write_text("  \n")
        assert store.load() == Document()

    def test_malformed_file_loads_empty(self, store):
        store.storage_dir.mkdir(parents=True)
        store.path.write_text("<<<<<<< HEAD\n")
        assert store.load() == Document()

    def test_save_then_load(self, store, make_entry):
        doc = Document(
            items=[make_entry("1", pinned=True), make_entry("2", type="prompts")],
            subscriptions=[
                Subscription(id="s", username="bob", url="https://github.com/bob/c")
            ],
        )
        store.save(doc)
        assert store.load() == doc

    def test_save_creates_storage_dir(self, store, make_entry):
        store.save(Document(items=[make_entry("1")]))
        assert store.path.exists()

    def test_save_writes_indented_json_with_newline(self, store, make_entry):
        doc = Document(items=[make_entry("1")])
        store.save(doc)
        text = store.path.read_text(encoding="utf-8")
        assert text == serialize_document(doc)
        assert text.endswith("}\n")
        assert '\n  "items": [' in text

    def test_save_deduplicates(self, store, make_entry):
        saved = store.save(
            Document(items=[make_entry("1", name="a"), make_entry("1", name="b")])
        )
        assert [e.name for e in saved.items] == ["a"]
        assert [e.name for e in store.load().items] == ["a"]

    def test_save_entries_keeps_subscriptions(self, store, make_entry):
        sub = Subscription(id="s", username="bob", url="https://github.com/bob/c")
        store.save(Document(subscriptions=[sub]))

        store.save_entries([make_entry("1")])

        loaded = store.load()
        assert loaded.subscriptions == [sub]
        assert [e.id for e in loaded.items] == ["1"]

    def test_no_temp_files_left_behind(self, store, make_entry):
        store.save(Document(items=[make_entry("1")]))
        store.save(Document(items=[make_entry("2")]))
        assert [p.name for p in store.storage_dir.iterdir()] == ["data.json"]

    def test_loads_bom_prefixed_file(self, store):
        store.storage_dir.mkdir(parents=True)
        payload = '{"items": [{"id": "1", "name": "n", "content": "c"}]}'
        store.path.write_bytes(b"\xef\xbb\xbf" + payload.encode("utf-8"))
        assert [e.id for e in store.load().items] == ["1"]

    def test_unicode_preserved(self, store, make_entry):
        store.save(Document(items=[make_entry("1", name="café ☕")]))
        assert "café ☕" in store.path.read_text(encoding="utf-8")
        assert store.load().items[0].name == "café ☕"

    def test_ensure_exists_seeds_once(self, store, make_entry):
        store.ensure_exists()
        assert store.load() == Document()
        store.save(Document(items=[make_entry("1")]))
        store.ensure_exists()
        assert len(store.load().items) == 1

    def test_custom_document_name(self, tmp_path):
        custom = DocumentStore(tmp_path, "commands.json")
        custom.ensure_exists()
        assert (tmp_path / "commands.json").exists()
