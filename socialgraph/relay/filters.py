"""
Relay Wire Types

Filter and record structures for the relay websocket protocol:

    -> ["REQ", <sub_id>, <filter>]
    <- ["EVENT", <sub_id>, <event>]
    <- ["EOSE", <sub_id>]
    <- ["CLOSED", <sub_id>, <message>]
    <- ["NOTICE", <message>]
    -> ["CLOSE", <sub_id>]
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..errors import MalformedRecordError
from ..identity import is_hex_identity


# Record kinds
KIND_PROFILE = 0
KIND_NOTE = 1
KIND_FOLLOW_LIST = 3
KIND_REPOST = 6
KIND_REACTION = 7
KIND_ZAP = 9735

INTERACTION_KINDS = [KIND_NOTE, KIND_REPOST, KIND_REACTION, KIND_ZAP]


@dataclass(frozen=True)
class RelayFilter:
    """Query filter sent with a REQ message."""
    kinds: List[int]
    authors: Optional[List[str]] = None
    referenced_identity: Optional[str] = None  # "#p" tag
    since: Optional[int] = None
    limit: Optional[int] = None

    def to_wire(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kinds": list(self.kinds)}
        if self.authors:
            data["authors"] = list(self.authors)
        if self.referenced_identity:
            data["#p"] = [self.referenced_identity]
        if self.since is not None and self.since > 0:
            data["since"] = self.since
        if self.limit is not None:
            data["limit"] = self.limit
        return data


@dataclass(frozen=True)
class RelayRecord:
    """One stored event returned by a relay. Signatures are not verified."""
    id: str
    pubkey: str
    kind: int
    created_at: int
    tags: Tuple[Tuple[str, ...], ...] = field(default_factory=tuple)
    content: str = ""

    @classmethod
    def from_event(cls, event: Any) -> "RelayRecord":
        """Validate a raw EVENT payload."""
        if not isinstance(event, dict):
            raise MalformedRecordError(f"event is not an object: {type(event).__name__}")

        record_id = event.get("id")
        pubkey = event.get("pubkey")
        kind = event.get("kind")
        created_at = event.get("created_at")
        tags = event.get("tags", [])
        content = event.get("content", "")

        if not isinstance(record_id, str) or not record_id:
            raise MalformedRecordError("missing id")
        if not isinstance(pubkey, str) or not is_hex_identity(pubkey.lower()):
            raise MalformedRecordError(f"record {record_id}: bad pubkey {pubkey!r}")
        if not isinstance(kind, int) or isinstance(kind, bool):
            raise MalformedRecordError(f"record {record_id}: bad kind {kind!r}")
        if not isinstance(created_at, int) or isinstance(created_at, bool):
            raise MalformedRecordError(f"record {record_id}: bad created_at {created_at!r}")
        if not isinstance(tags, list) or not all(isinstance(t, list) for t in tags):
            raise MalformedRecordError(f"record {record_id}: bad tags")
        if not isinstance(content, str):
            raise MalformedRecordError(f"record {record_id}: bad content")

        return cls(
            id=record_id,
            pubkey=pubkey.lower(),
            kind=kind,
            created_at=created_at,
            tags=tuple(tuple(str(v) for v in t) for t in tags),
            content=content,
        )

    def tag_values(self, name: str) -> List[str]:
        """Second element of every tag named `name`."""
        return [t[1] for t in self.tags if len(t) >= 2 and t[0] == name]


def encode_req(sub_id: str, relay_filter: RelayFilter) -> str:
    return json.dumps(["REQ", sub_id, relay_filter.to_wire()])


def encode_close(sub_id: str) -> str:
    return json.dumps(["CLOSE", sub_id])
