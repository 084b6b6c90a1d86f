"""
Unit tests for the known-identity registry and graph snapshot.

Tests:
- Registry sighting, grouping and seeding
- Snapshot merge-only operations
- Follow symmetry maintained by construction
"""

import pytest

from socialgraph.registry import KnownIdentityRegistry
from socialgraph.snapshot import GraphSnapshot
from socialgraph.types import Group, InteractionKind, ProfileMetadata, Zap


A = "0a" * 32
B = "0b" * 32
C = "0c" * 32
T0 = 1_000
T1 = 2_000


class TestRegistry:
    """Registry mutation and queries."""

    @pytest.fixture
    def registry(self):
        return KnownIdentityRegistry()

    def test_first_sighting_inserts_other(self, registry):
        assert registry.ensure(A, T0) is True
        entry = registry.get(A)
        assert entry.group == Group.OTHER
        assert entry.first_seen == entry.last_seen == T0

    def test_later_sighting_bumps_last_seen_only(self, registry):
        registry.ensure(A, T0)
        assert registry.ensure(A, T1) is False
        entry = registry.get(A)
        assert entry.first_seen == T0
        assert entry.last_seen == T1

    def test_sighting_never_downgrades_group(self, registry):
        registry.assign(A, Group.CORE, T0)
        registry.ensure(A, T1)
        assert registry.get(A).group == Group.CORE

    def test_assign_keeps_first_seen(self, registry):
        registry.ensure(A, T0)
        registry.assign(A, Group.AGENCY, T1)
        entry = registry.get(A)
        assert entry.group == Group.AGENCY
        assert entry.first_seen == T0

    def test_seed_does_not_override_existing(self, registry):
        registry.assign(A, Group.AGENCY, T0)
        registry.seed(core=[A, B], agency=[C], now_ms=T1)

        assert registry.get(A).group == Group.AGENCY
        assert registry.get(B).group == Group.CORE
        assert registry.get(C).group == Group.AGENCY

    def test_tracked_is_core_then_agency(self, registry):
        registry.assign(C, Group.AGENCY, T0)
        registry.assign(A, Group.CORE, T0)
        registry.ensure(B, T0)

        assert registry.tracked() == [A, C]
        assert registry.core_set() == {A}

    def test_copy_is_independent(self, registry):
        registry.ensure(A, T0)
        clone = registry.copy()
        clone.ensure(A, T1)
        clone.ensure(B, T1)

        assert registry.get(A).last_seen == T0
        assert B not in registry


class TestSnapshotMerge:
    """Merge-only snapshot operations."""

    @pytest.fixture
    def snapshot(self):
        return GraphSnapshot()

    def test_add_follows_writes_back_edges(self, snapshot):
        added = snapshot.add_follows(A, [B, C])

        assert added == [B, C]
        assert snapshot.get(A).follows == {B, C}
        assert snapshot.get(B).followers == {A}
        assert snapshot.get(C).followers == {A}

    def test_add_follows_is_union(self, snapshot):
        snapshot.add_follows(A, [B])
        added = snapshot.add_follows(A, [C])

        assert added == [C]
        assert snapshot.get(A).follows == {B, C}

    def test_self_follow_ignored(self, snapshot):
        snapshot.add_follows(A, [A])
        assert snapshot.get(A).follows == set()

    def test_interactions_deduplicated(self, snapshot):
        assert snapshot.add_interaction(A, InteractionKind.LIKE, B) is True
        assert snapshot.add_interaction(A, InteractionKind.LIKE, B) is False
        assert snapshot.get(A).likes == {B}

    def test_identical_zap_recorded_once(self, snapshot):
        zap = Zap(A, 21, 100)
        assert snapshot.add_zap(A, zap) is True
        assert snapshot.add_zap(A, Zap(A, 21, 100)) is False
        assert snapshot.add_zap(A, Zap(A, 21, 101)) is True
        assert len(snapshot.get(A).zaps) == 2

    def test_metadata_replaced_by_newest(self, snapshot):
        snapshot.set_metadata(A, ProfileMetadata(name="old"))
        snapshot.set_metadata(A, ProfileMetadata(name="new"))
        assert snapshot.get(A).metadata.name == "new"

    def test_referenced_identities(self, snapshot):
        snapshot.add_follows(A, [B])
        snapshot.add_interaction(A, InteractionKind.MENTION, C)
        assert snapshot.referenced_identities() == {A, B, C}


class TestSymmetry:
    """Follows/followers symmetry."""

    def test_no_violations_after_merges(self):
        snapshot = GraphSnapshot()
        snapshot.add_follows(A, [B, C])
        snapshot.add_follows(B, [A])
        assert snapshot.symmetry_violations() == []

    def test_detects_and_repairs_missing_back_edge(self):
        snapshot = GraphSnapshot()
        snapshot.ensure_member(A).follows.add(B)

        assert snapshot.symmetry_violations() == [(A, B)]
        assert snapshot.repair_symmetry() == 1
        assert snapshot.get(B).followers == {A}
        assert snapshot.symmetry_violations() == []

    def test_copy_is_independent(self):
        snapshot = GraphSnapshot()
        snapshot.add_follows(A, [B])
        clone = snapshot.copy()
        clone.add_follows(A, [C])

        assert snapshot.get(A).follows == {B}
        assert C not in snapshot
