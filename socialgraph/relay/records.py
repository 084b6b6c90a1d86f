"""
Record Kind Classification

Maps a relay record to a tagged variant so each kind has one merge handler:

    kind 0     -> ProfileRecord
    kind 3     -> FollowListRecord
    kind 1     -> MentionRecord
    kind 6     -> RepostRecord
    kind 7     -> ReactionRecord
    kind 9735  -> ZapRecord
    other      -> UnknownRecord
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from ..errors import MalformedRecordError
from ..identity import is_hex_identity
from ..types import ProfileMetadata, Zap
from .filters import (
    KIND_FOLLOW_LIST,
    KIND_NOTE,
    KIND_PROFILE,
    KIND_REACTION,
    KIND_REPOST,
    KIND_ZAP,
    RelayRecord,
)


_logger = logging.getLogger("RecordKinds")


@dataclass(frozen=True)
class ProfileRecord:
    author: str
    metadata: ProfileMetadata


@dataclass(frozen=True)
class FollowListRecord:
    author: str
    follows: List[str]


@dataclass(frozen=True)
class MentionRecord:
    author: str


@dataclass(frozen=True)
class RepostRecord:
    author: str


@dataclass(frozen=True)
class ReactionRecord:
    author: str


@dataclass(frozen=True)
class ZapRecord:
    author: str
    zap: Zap


@dataclass(frozen=True)
class UnknownRecord:
    author: str
    kind: int


RecordVariant = Union[
    ProfileRecord,
    FollowListRecord,
    MentionRecord,
    RepostRecord,
    ReactionRecord,
    ZapRecord,
    UnknownRecord,
]


def classify_record_kind(record: RelayRecord, target: Optional[str] = None) -> RecordVariant:
    """
    Decode a record into its variant.

    Args:
        record: Validated relay record
        target: Identity the record was fetched for (zap target)

    Raises:
        MalformedRecordError: content or tags cannot be decoded
    """
    if record.kind == KIND_PROFILE:
        return ProfileRecord(record.pubkey, _parse_profile(record))

    if record.kind == KIND_FOLLOW_LIST:
        return FollowListRecord(record.pubkey, _parse_follows(record))

    if record.kind == KIND_NOTE:
        return MentionRecord(record.pubkey)

    if record.kind == KIND_REPOST:
        return RepostRecord(record.pubkey)

    if record.kind == KIND_REACTION:
        return ReactionRecord(record.pubkey)

    if record.kind == KIND_ZAP:
        return ZapRecord(record.pubkey, _parse_zap(record, target))

    return UnknownRecord(record.pubkey, record.kind)


def _parse_profile(record: RelayRecord) -> ProfileMetadata:
    try:
        content = json.loads(record.content)
    except ValueError as e:
        raise MalformedRecordError(f"record {record.id}: profile content is not JSON") from e
    if not isinstance(content, dict):
        raise MalformedRecordError(f"record {record.id}: profile content is not an object")
    return ProfileMetadata.from_profile_content(content)


def _parse_follows(record: RelayRecord) -> List[str]:
    follows = []
    for value in record.tag_values("p"):
        identity = value.lower()
        if not is_hex_identity(identity):
            _logger.debug(f"record {record.id}: skipping undecodable identity {value!r}")
            continue
        follows.append(identity)
    return list(dict.fromkeys(follows))


def _parse_zap(record: RelayRecord, target: Optional[str]) -> Zap:
    amounts = record.tag_values("amount")
    if not amounts:
        raise MalformedRecordError(f"record {record.id}: zap without amount tag")
    try:
        amount = int(amounts[0])
    except ValueError as e:
        raise MalformedRecordError(f"record {record.id}: bad zap amount {amounts[0]!r}") from e

    if target is None:
        referenced = record.tag_values("p")
        if not referenced:
            raise MalformedRecordError(f"record {record.id}: zap without target")
        target = referenced[0].lower()

    return Zap(target=target, amount=amount, timestamp=record.created_at)


# =========================================================================
# Version selection
# =========================================================================

def _recency(record: RelayRecord):
    return (record.created_at, record.id)


def select_latest(records: Iterable[RelayRecord], kind: int) -> Optional[RelayRecord]:
    """Most recent record of a kind (relays may hold different versions)."""
    candidates = [r for r in records if r.kind == kind]
    if not candidates:
        return None
    return max(candidates, key=_recency)


def latest_per_author(records: Iterable[RelayRecord], kind: int) -> Dict[str, RelayRecord]:
    """Most recent record of a kind for each author."""
    latest: Dict[str, RelayRecord] = {}
    for record in records:
        if record.kind != kind:
            continue
        current = latest.get(record.pubkey)
        if current is None or _recency(record) > _recency(current):
            latest[record.pubkey] = record
    return latest
