"""Tests for the key-value stores."""

from __future__ import annotations

import json

from grump_engine.personality.store import JsonFileStore, MemoryStore


class TestMemoryStore:
    def test_get_put(self):
        s = MemoryStore({"a": "1"})
        assert s.get("a") == "1"
        assert s.get("b") is None
        s.put("b", "2")
        assert s.get("b") == "2"
        assert s.puts == 1


class TestJsonFileStore:
    def test_missing_file_reads_none(self, tmp_path):
        assert JsonFileStore(tmp_path / "nope.json").get("k") is None

    def test_put_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "deep" / "dir" / "store.json"
        s = JsonFileStore(path)
        s.put("k", "v")
        assert json.loads(path.read_text()) == {"k": "v"}

    def test_keys_are_preserved_across_puts(self, tmp_path):
        s = JsonFileStore(tmp_path / "store.json")
        s.put("a", "1")
        s.put("b", "2")
        assert s.get("a") == "1"
        assert s.get("b") == "2"

    def test_no_temp_files_left(self, tmp_path):
        s = JsonFileStore(tmp_path / "store.json")
        s.put("a", "1")
        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{{{ not json")
        s = JsonFileStore(path)
        assert s.get("a") is None
        s.put("a", "1")
        assert s.get("a") == "1"

    def test_non_object_file_reads_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[1, 2, 3]")
        assert JsonFileStore(path).get("0") is None

    def test_non_string_value_ignored(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps({"a": 5}))
        assert JsonFileStore(path).get("a") is None
