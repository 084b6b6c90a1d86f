"""
Graph State Persistence

Document stores with load()/commit() semantics:
- JsonFileStore: atomic replace-on-success JSON files
- MemoryStore: deep-copying in-memory store for tests
- GraphStateStore: the registry + snapshot pair used by the aggregator

A missing document loads as None (first run), never as an error.
"""

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple

from .errors import PersistenceError
from .registry import KnownIdentityRegistry
from .snapshot import GraphSnapshot


class DocumentStore(Protocol):
    def load(self) -> Optional[Dict]:
        ...

    def commit(self, document: Dict):
        ...

    def version(self) -> Optional[Any]:
        """Token that changes whenever a new document is committed."""
        ...


class JsonFileStore:
    """One JSON document on disk, replaced atomically on commit."""

    def __init__(self, path):
        self.path = Path(path)
        self._logger = logging.getLogger("JsonFileStore")

    def load(self) -> Optional[Dict]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read {self.path}: {e}") from e
        if not isinstance(document, dict):
            raise PersistenceError(f"{self.path} does not contain a JSON object")
        return document

    def commit(self, document: Dict):
        payload = self.serialize(document)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        self._logger.debug(f"Committed {self.path} ({len(payload)} bytes)")

    def version(self) -> Optional[Tuple[int, int]]:
        """(inode, mtime) of the file, None while it does not exist."""
        try:
            stat = os.stat(self.path)
            return stat.st_ino, stat.st_mtime_ns
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to stat {self.path}: {e}") from e

    @staticmethod
    def serialize(document: Dict) -> str:
        try:
            return json.dumps(document, indent=2, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Document is not serializable: {e}") from e


class MemoryStore:
    """In-memory document store; loads and commits are isolated copies."""

    def __init__(self, document: Optional[Dict] = None):
        self._document = copy.deepcopy(document)
        self.commits = 0

    def load(self) -> Optional[Dict]:
        return copy.deepcopy(self._document)

    def commit(self, document: Dict):
        self._document = copy.deepcopy(document)
        self.commits += 1

    def version(self) -> int:
        return self.commits


class GraphStateStore:
    """
    Registry and snapshot documents committed together.

    Both documents are serialized before anything is written. The registry is
    written first, so a failure between the two writes can only leave extra
    registry entries and every snapshot identity stays registered.
    """

    def __init__(self, registry_store: DocumentStore, snapshot_store: DocumentStore):
        self.registry_store = registry_store
        self.snapshot_store = snapshot_store

    @classmethod
    def from_config(cls, config) -> "GraphStateStore":
        return cls(JsonFileStore(config.registry_path), JsonFileStore(config.snapshot_path))

    @classmethod
    def in_memory(cls) -> "GraphStateStore":
        return cls(MemoryStore(), MemoryStore())

    def version(self) -> Tuple[Any, Any]:
        return self.registry_store.version(), self.snapshot_store.version()

    def load(self) -> Tuple[KnownIdentityRegistry, GraphSnapshot]:
        try:
            registry = KnownIdentityRegistry.from_dict(self.registry_store.load())
            snapshot = GraphSnapshot.from_dict(self.snapshot_store.load())
        except PersistenceError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Persisted graph state is corrupt: {e}") from e
        return registry, snapshot

    def commit(self, registry: KnownIdentityRegistry, snapshot: GraphSnapshot):
        registry_doc = registry.to_dict()
        snapshot_doc = snapshot.to_dict()
        JsonFileStore.serialize(registry_doc)
        JsonFileStore.serialize(snapshot_doc)

        self.registry_store.commit(registry_doc)
        self.snapshot_store.commit(snapshot_doc)
