"""
Unit tests for the node classifier.

Tests:
- Core membership wins
- mutual / follower / following by edges to the core set
- Identities with no core edges are unrelated
"""

from socialgraph.classifier import classify
from socialgraph.types import MemberRecord, NodeType


X = "01" * 32
Y = "02" * 32
OTHER = "03" * 32
CORE = {X}


class TestClassify:
    """Relationship to core = {X}."""

    def test_core_member(self):
        member = MemberRecord(follows={Y})
        assert classify(X, CORE, member) == NodeType.CORE

    def test_core_member_without_record(self):
        assert classify(X, CORE, None) == NodeType.CORE

    def test_follows_core_only_is_follower(self):
        assert classify(Y, CORE, MemberRecord(follows={X})) == NodeType.FOLLOWER

    def test_followed_by_core_only_is_following(self):
        assert classify(Y, CORE, MemberRecord(followers={X})) == NodeType.FOLLOWING

    def test_both_directions_is_mutual(self):
        member = MemberRecord(follows={X}, followers={X})
        assert classify(Y, CORE, member) == NodeType.MUTUAL

    def test_no_edges_is_unrelated(self):
        assert classify(Y, CORE, MemberRecord()) == NodeType.UNRELATED

    def test_edges_only_to_non_core_is_unrelated(self):
        member = MemberRecord(follows={OTHER}, followers={OTHER})
        assert classify(Y, CORE, member) == NodeType.UNRELATED

    def test_missing_record_is_unrelated(self):
        assert classify(Y, CORE, None) == NodeType.UNRELATED

    def test_interactions_do_not_count_as_edges(self):
        member = MemberRecord(mentions={X}, likes={X}, reposts={X})
        assert classify(Y, CORE, member) == NodeType.UNRELATED

    def test_empty_core_set(self):
        member = MemberRecord(follows={X}, followers={X})
        assert classify(Y, set(), member) == NodeType.UNRELATED
