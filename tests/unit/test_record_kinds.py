"""
Unit tests for record kind classification.

Tests:
- Each kind maps to its variant
- Malformed content raises MalformedRecordError
- Latest-version selection
"""

import json

import pytest

from socialgraph.errors import MalformedRecordError
from socialgraph.relay.filters import RelayRecord
from socialgraph.relay.mock_relay import make_event
from socialgraph.relay.records import (
    FollowListRecord,
    MentionRecord,
    ProfileRecord,
    ReactionRecord,
    RepostRecord,
    UnknownRecord,
    ZapRecord,
    classify_record_kind,
    latest_per_author,
    select_latest,
)


ALICE = "a1" * 32
BOB = "b2" * 32
CAROL = "c3" * 32


def record(pubkey, kind, created_at=1_700_000_000, tags=None, content=""):
    return RelayRecord.from_event(make_event(pubkey, kind, created_at, tags, content))


class TestClassification:
    """Kind -> variant dispatch."""

    def test_profile(self):
        content = json.dumps({"name": "alice", "display_name": "Alice", "nip05": "a@x.io"})
        variant = classify_record_kind(record(ALICE, 0, content=content))

        assert isinstance(variant, ProfileRecord)
        assert variant.author == ALICE
        assert variant.metadata.display_name == "Alice"
        assert variant.metadata.verified_handle == "a@x.io"

    def test_profile_camel_case_display_name(self):
        content = json.dumps({"displayName": "Al"})
        variant = classify_record_kind(record(ALICE, 0, content=content))
        assert variant.metadata.display_name == "Al"

    def test_profile_invalid_json(self):
        with pytest.raises(MalformedRecordError):
            classify_record_kind(record(ALICE, 0, content="{not json"))

    def test_profile_non_object(self):
        with pytest.raises(MalformedRecordError):
            classify_record_kind(record(ALICE, 0, content="[1, 2]"))

    def test_follow_list_keeps_valid_unique_identities(self):
        tags = [["p", BOB], ["p", "not-a-key"], ["e", CAROL], ["p", CAROL.upper()], ["p", BOB]]
        variant = classify_record_kind(record(ALICE, 3, tags=tags))

        assert isinstance(variant, FollowListRecord)
        assert variant.follows == [BOB, CAROL]

    def test_empty_follow_list(self):
        variant = classify_record_kind(record(ALICE, 3))
        assert variant.follows == []

    @pytest.mark.parametrize("kind,variant_type", [
        (1, MentionRecord),
        (6, RepostRecord),
        (7, ReactionRecord),
        (30023, UnknownRecord),
    ])
    def test_interaction_kinds(self, kind, variant_type):
        variant = classify_record_kind(record(BOB, kind, tags=[["p", ALICE]]), ALICE)
        assert isinstance(variant, variant_type)
        assert variant.author == BOB

    def test_zap_with_amount(self):
        rec = record(CAROL, 9735, created_at=1_700_000_500, tags=[["p", ALICE], ["amount", "21000"]])
        variant = classify_record_kind(rec, ALICE)

        assert isinstance(variant, ZapRecord)
        assert variant.zap.target == ALICE
        assert variant.zap.amount == 21000
        assert variant.zap.timestamp == 1_700_000_500

    def test_zap_target_from_tag_when_not_given(self):
        rec = record(CAROL, 9735, tags=[["p", BOB], ["amount", "1"]])
        assert classify_record_kind(rec).zap.target == BOB

    def test_zap_without_amount(self):
        with pytest.raises(MalformedRecordError):
            classify_record_kind(record(CAROL, 9735, tags=[["p", ALICE]]), ALICE)

    def test_zap_bad_amount(self):
        with pytest.raises(MalformedRecordError):
            classify_record_kind(record(CAROL, 9735, tags=[["amount", "lots"]]), ALICE)


class TestVersionSelection:
    """Most recent version wins."""

    def test_select_latest(self):
        old = record(ALICE, 3, created_at=100, tags=[["p", BOB]])
        new = record(ALICE, 3, created_at=200, tags=[["p", CAROL]])
        other_kind = record(ALICE, 0, created_at=300, content="{}")

        assert select_latest([old, new, other_kind], 3) == new

    def test_select_latest_none(self):
        assert select_latest([], 3) is None

    def test_latest_per_author(self):
        a_old = record(ALICE, 0, created_at=100, content="{}")
        a_new = record(ALICE, 0, created_at=200, content='{"name": "a"}')
        b = record(BOB, 0, created_at=50, content="{}")

        latest = latest_per_author([a_new, b, a_old], 0)

        assert latest == {ALICE: a_new, BOB: b}
