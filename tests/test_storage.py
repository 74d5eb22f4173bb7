"""Tests for the blob stores and the kit / pattern / arrangement libraries."""

import json

import pytest

from beatlab.errors import ResourceUnavailable
from beatlab.sequencing.arrangement import SongArrangement, SongSection
from beatlab.sequencing.pattern import SequencerPattern
from beatlab.storage import (ArrangementLibrary, JsonFileStore, KitLibrary, MemoryStore, PatternLibrary,
                             json_file_stores, memory_stores)


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return JsonFileStore(tmp_path / "library.json")


class TestStores:

    def test_put_get_delete(self, store):
        store.put("a", {"x": 1})
        store.put("b", {"x": 2})
        assert store.get("a") == {"x": 1}
        assert sorted(store.list()) == ["a", "b"]
        store.delete("a")
        assert store.get("a") is None
        assert store.list() == ["b"]

    def test_delete_missing_is_noop(self, store):
        store.delete("nope")
        assert store.list() == []

    def test_memory_store_returns_copies(self):
        store = MemoryStore()
        blob = {"grid": {"0": [True]}}
        store.put("p", blob)
        blob["grid"]["0"][0] = False
        store.get("p")["grid"]["0"].append(True)
        assert store.get("p") == {"grid": {"0": [True]}}

    def test_file_store_persists(self, tmp_path):
        path = tmp_path / "data" / "kits.json"
        JsonFileStore(path).put("k", {"name": "Kit"})
        assert JsonFileStore(path).get("k") == {"name": "Kit"}
        assert not path.with_suffix(".json.tmp").exists()

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert JsonFileStore(path).list() == []

    def test_unwritable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(ResourceUnavailable):
            JsonFileStore(blocker / "x.json").put("k", {})


class TestLibraries:

    def test_kit_round_trip(self, store, kit):
        library = KitLibrary(store)
        library.save(kit)
        assert library.get(kit.id) == kit

    def test_pattern_round_trip(self, store):
        library = PatternLibrary(store)
        pattern = SequencerPattern(name="Verse", bpm=90, grid={0: [True] * 16})
        library.save(pattern)
        assert library.get(pattern.id) == pattern

    def test_stored_short_rows_are_repaired(self, store):
        """Records saved with 12-step rows load as 16 steps."""
        store.put("old", {"id": "old", "name": "Old", "bpm": 100,
                          "grid": {"0": [True] * 12, "3": [False] * 16}})
        pattern = PatternLibrary(store).get("old")
        assert pattern.grid[0] == [True] * 12 + [False] * 4
        assert pattern.grid[3] == [False] * 16

    def test_unreadable_records_skipped(self, store, kit):
        library = KitLibrary(store)
        library.save(kit)
        store.put("bad", {"id": "bad", "pads": [{"id": 0}]})
        assert library.get("bad") is None
        assert library.load_all() == [kit]

    def test_arrangement_round_trip(self, store):
        library = ArrangementLibrary(store)
        song = SongArrangement(name="Song", sections=[SongSection("Intro", "p1", 2), SongSection("Drop", "p2")])
        library.save(song)
        assert library.get(song.id) == song
        library.delete(song.id)
        assert library.load_all() == []

    def test_file_is_plain_json(self, tmp_path):
        path = tmp_path / "patterns.json"
        pattern = SequencerPattern(name="A", bpm=120, grid={2: [False] * 16}, id="p")
        PatternLibrary(JsonFileStore(path)).save(pattern)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["p"]["grid"] == {"2": [False] * 16}

    def test_factories_give_one_store_per_collection(self, tmp_path):
        stores = memory_stores()
        assert stores(KitLibrary.collection) is not stores(PatternLibrary.collection)
        store = json_file_stores(tmp_path)(ArrangementLibrary.collection)
        assert store.path == tmp_path / "arrangements.json"
