"""
Unit tests for graph state persistence.

Tests:
- Missing documents load as empty state
- Atomic replace-on-success commits
- Corrupt documents raise PersistenceError
- Deterministic serialization
- Version tokens change on commit
"""

import json
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from socialgraph.errors import PersistenceError
from socialgraph.registry import KnownIdentityRegistry
from socialgraph.snapshot import GraphSnapshot
from socialgraph.store import GraphStateStore, JsonFileStore, MemoryStore
from socialgraph.types import Group, ProfileMetadata, Zap


ALICE = "a1" * 32
BOB = "b2" * 32
NOW = 1_700_000_000_000


@pytest.fixture
def data_dir():
    """Temporary data directory."""
    with tempfile.TemporaryDirectory() as path:
        yield Path(path)


def sample_state():
    registry = KnownIdentityRegistry(last_updated=NOW)
    registry.assign(ALICE, Group.CORE, NOW)
    registry.ensure(BOB, NOW)

    snapshot = GraphSnapshot(last_updated=NOW)
    snapshot.add_follows(ALICE, [BOB])
    snapshot.set_metadata(ALICE, ProfileMetadata(name="alice", verified_handle="alice@x.io"))
    snapshot.add_zap(ALICE, Zap(ALICE, 1000, 1_700_000_000))
    return registry, snapshot


class TestJsonFileStore:
    """Single document store."""

    def test_missing_file_loads_none(self, data_dir):
        assert JsonFileStore(data_dir / "absent.json").load() is None

    def test_commit_then_load(self, data_dir):
        store = JsonFileStore(data_dir / "nested" / "doc.json")
        store.commit({"a": 1})
        assert store.load() == {"a": 1}

    def test_commit_leaves_no_temp_files(self, data_dir):
        store = JsonFileStore(data_dir / "doc.json")
        store.commit({"a": 1})
        store.commit({"a": 2})
        assert os.listdir(data_dir) == ["doc.json"]

    def test_failed_commit_keeps_previous_document(self, data_dir):
        store = JsonFileStore(data_dir / "doc.json")
        store.commit({"version": 1})

        with patch("socialgraph.store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError):
                store.commit({"version": 2})

        assert store.load() == {"version": 1}
        assert os.listdir(data_dir) == ["doc.json"]

    def test_unserializable_document(self, data_dir):
        store = JsonFileStore(data_dir / "doc.json")
        with pytest.raises(PersistenceError):
            store.commit({"bad": object()})
        assert not (data_dir / "doc.json").exists()

    def test_corrupt_file_raises(self, data_dir):
        path = data_dir / "doc.json"
        path.write_text("{truncated")
        with pytest.raises(PersistenceError):
            JsonFileStore(path).load()

    def test_non_object_document_raises(self, data_dir):
        path = data_dir / "doc.json"
        path.write_text("[]")
        with pytest.raises(PersistenceError):
            JsonFileStore(path).load()

    def test_version_tracks_commits(self, data_dir):
        store = JsonFileStore(data_dir / "doc.json")
        assert store.version() is None

        store.commit({"a": 1})
        first = store.version()
        store.commit({"a": 1})

        assert first is not None
        assert store.version() != first


class TestMemoryStore:
    """Copy-on-write in-memory store."""

    def test_loads_are_isolated_copies(self):
        store = MemoryStore({"members": {}})
        loaded = store.load()
        loaded["members"]["x"] = 1
        assert store.load() == {"members": {}}

    def test_commit_copies(self):
        store = MemoryStore()
        document = {"a": [1]}
        store.commit(document)
        document["a"].append(2)
        assert store.load() == {"a": [1]}
        assert store.commits == 1


class TestGraphStateStore:
    """Registry + snapshot pair."""

    def test_first_run_is_empty(self, data_dir):
        store = GraphStateStore(
            JsonFileStore(data_dir / "known.json"), JsonFileStore(data_dir / "graph.json")
        )
        registry, snapshot = store.load()
        assert len(registry) == 0
        assert len(snapshot) == 0
        assert snapshot.last_updated == 0

    def test_round_trip_preserves_state(self, data_dir):
        store = GraphStateStore(
            JsonFileStore(data_dir / "known.json"), JsonFileStore(data_dir / "graph.json")
        )
        registry, snapshot = sample_state()
        store.commit(registry, snapshot)

        loaded_registry, loaded_snapshot = store.load()
        assert loaded_registry.to_dict() == registry.to_dict()
        assert loaded_snapshot.to_dict() == snapshot.to_dict()
        assert loaded_registry.get(ALICE).group == Group.CORE
        assert loaded_snapshot.get(ALICE).metadata.verified_handle == "alice@x.io"

    def test_document_format(self, data_dir):
        store = GraphStateStore(
            JsonFileStore(data_dir / "known.json"), JsonFileStore(data_dir / "graph.json")
        )
        store.commit(*sample_state())

        known = json.loads((data_dir / "known.json").read_text())
        graph = json.loads((data_dir / "graph.json").read_text())
        assert known["npubs"][ALICE] == {"group": "core", "firstSeen": NOW, "lastSeen": NOW}
        assert graph["members"][BOB]["followers"] == [ALICE]
        assert graph["members"][ALICE]["metadata"] == {"name": "alice", "nip05": "alice@x.io"}

    def test_serialization_is_byte_stable(self, data_dir):
        store = GraphStateStore(
            JsonFileStore(data_dir / "known.json"), JsonFileStore(data_dir / "graph.json")
        )
        store.commit(*sample_state())
        first = (data_dir / "graph.json").read_bytes()

        store.commit(*store.load())
        assert (data_dir / "graph.json").read_bytes() == first

    def test_corrupt_member_raises_persistence_error(self):
        store = GraphStateStore(
            MemoryStore(),
            MemoryStore({"lastUpdated": 1, "members": {ALICE: {"zaps": [{"target": ALICE}]}}}),
        )
        with pytest.raises(PersistenceError):
            store.load()

    def test_snapshot_failure_leaves_registry_superset(self):
        registry_store = MemoryStore()
        snapshot_store = MemoryStore()
        store = GraphStateStore(registry_store, snapshot_store)

        with patch.object(snapshot_store, "commit", side_effect=PersistenceError("disk full")):
            with pytest.raises(PersistenceError):
                store.commit(*sample_state())

        registry, snapshot = store.load()
        assert ALICE in registry
        assert len(snapshot) == 0

    def test_version_changes_with_either_document(self):
        store = GraphStateStore.in_memory()
        before = store.version()

        store.commit(*sample_state())

        assert store.version() != before
