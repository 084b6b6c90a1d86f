"""
Nostr Social Graph Aggregator

Components:
- relay/: Fan-out relay queries and record kind classification
- registry.py: Known-identity registry (group, first/last seen)
- snapshot.py: Merge-only graph snapshot (edges, interactions, metadata)
- store.py: Atomic JSON persistence of registry + snapshot
- aggregator.py: Aggregation pass over tracked identities
- classifier.py: Relationship of an identity to the core set
- exporter.py: Nodes/links export for the graph UI
- cache_gate.py: Freshness policy for the read path
- service.py: Read/write path facade
"""

from .config import GraphConfig
from .types import Group, NodeType, MemberRecord, KnownIdentityEntry, VisGraph
from .registry import KnownIdentityRegistry
from .snapshot import GraphSnapshot
from .store import GraphStateStore, JsonFileStore, MemoryStore
from .classifier import classify
from .exporter import export_graph
from .cache_gate import SnapshotCacheGate, is_fresh
from .aggregator import AggregationOrchestrator, PassResult
from .service import SocialGraphService, build_service

__all__ = [
    "GraphConfig",
    "Group",
    "NodeType",
    "MemberRecord",
    "KnownIdentityEntry",
    "VisGraph",
    "KnownIdentityRegistry",
    "GraphSnapshot",
    "GraphStateStore",
    "JsonFileStore",
    "MemoryStore",
    "classify",
    "export_graph",
    "SnapshotCacheGate",
    "is_fresh",
    "AggregationOrchestrator",
    "PassResult",
    "SocialGraphService",
    "build_service",
]
