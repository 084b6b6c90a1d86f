"""
Social Graph Data Types

Pure data structures for the persisted registry/snapshot documents and the
derived visualization graph. Serialized keys match the JSON documents read by
the graph UI (lastUpdated, members, npubs, displayName, nip05).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class Group(Enum):
    """Registry group of a known identity."""
    CORE = "core"
    AGENCY = "agency"
    OTHER = "other"


class NodeType(Enum):
    """Relationship of an identity to the core set."""
    CORE = "core"
    MUTUAL = "mutual"
    FOLLOWER = "follower"      # follows at least one core identity
    FOLLOWING = "following"    # followed by at least one core identity
    UNRELATED = "unrelated"


class InteractionKind(Enum):
    """Interaction sets kept on a member record."""
    MENTION = "mentions"
    LIKE = "likes"
    REPOST = "reposts"


@dataclass
class KnownIdentityEntry:
    """Registry entry. Timestamps are epoch milliseconds."""
    identity: str
    group: Group
    first_seen: int
    last_seen: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group": self.group.value,
            "firstSeen": self.first_seen,
            "lastSeen": self.last_seen,
        }

    @classmethod
    def from_dict(cls, identity: str, data: Dict[str, Any]) -> "KnownIdentityEntry":
        return cls(
            identity=identity,
            group=Group(data.get("group", Group.OTHER.value)),
            first_seen=int(data.get("firstSeen", 0)),
            last_seen=int(data.get("lastSeen", 0)),
        )


@dataclass(frozen=True)
class Zap:
    """Payment notification received by target (timestamp in epoch seconds)."""
    target: str
    amount: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {"target": self.target, "amount": self.amount, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Zap":
        return cls(
            target=data["target"],
            amount=int(data["amount"]),
            timestamp=int(data["timestamp"]),
        )


@dataclass(frozen=True)
class ProfileMetadata:
    """Last fetched profile metadata."""
    name: Optional[str] = None
    display_name: Optional[str] = None
    picture: Optional[str] = None
    about: Optional[str] = None
    verified_handle: Optional[str] = None

    @classmethod
    def from_profile_content(cls, content: Dict[str, Any]) -> "ProfileMetadata":
        """Build from a decoded kind-0 content object."""
        def text(key: str) -> Optional[str]:
            value = content.get(key)
            return value if isinstance(value, str) and value else None

        return cls(
            name=text("name"),
            display_name=text("display_name") or text("displayName"),
            picture=text("picture"),
            about=text("about"),
            verified_handle=text("nip05"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "displayName": self.display_name,
            "picture": self.picture,
            "about": self.about,
            "nip05": self.verified_handle,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfileMetadata":
        return cls(
            name=data.get("name"),
            display_name=data.get("displayName"),
            picture=data.get("picture"),
            about=data.get("about"),
            verified_handle=data.get("nip05"),
        )


@dataclass
class MemberRecord:
    """Edges, interactions and metadata observed for one identity."""
    follows: Set[str] = field(default_factory=set)
    followers: Set[str] = field(default_factory=set)
    mentions: Set[str] = field(default_factory=set)
    likes: Set[str] = field(default_factory=set)
    reposts: Set[str] = field(default_factory=set)
    zaps: List[Zap] = field(default_factory=list)
    metadata: Optional[ProfileMetadata] = None

    def interactions(self, kind: InteractionKind) -> Set[str]:
        return getattr(self, kind.value)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "follows": sorted(self.follows),
            "followers": sorted(self.followers),
            "mentions": sorted(self.mentions),
            "likes": sorted(self.likes),
            "reposts": sorted(self.reposts),
            "zaps": [
                z.to_dict()
                for z in sorted(self.zaps, key=lambda z: (z.timestamp, z.target, z.amount))
            ],
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemberRecord":
        metadata = data.get("metadata")
        return cls(
            follows=set(data.get("follows", [])),
            followers=set(data.get("followers", [])),
            mentions=set(data.get("mentions", [])),
            likes=set(data.get("likes", [])),
            reposts=set(data.get("reposts", [])),
            zaps=[Zap.from_dict(z) for z in data.get("zaps", [])],
            metadata=ProfileMetadata.from_dict(metadata) if metadata else None,
        )

    def copy(self) -> "MemberRecord":
        return MemberRecord(
            follows=set(self.follows),
            followers=set(self.followers),
            mentions=set(self.mentions),
            likes=set(self.likes),
            reposts=set(self.reposts),
            zaps=list(self.zaps),
            metadata=self.metadata,
        )


# =========================================================================
# Visualization (derived, never persisted)
# =========================================================================

@dataclass(frozen=True)
class VisNode:
    id: str
    npub: str
    type: NodeType
    color: str
    size: int
    name: Optional[str] = None
    picture: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "npub": self.npub,
            "type": self.type.value,
            "color": self.color,
            "size": self.size,
        }
        if self.name is not None:
            data["name"] = self.name
        if self.picture is not None:
            data["picture"] = self.picture
        return data


@dataclass(frozen=True)
class VisLink:
    source: str
    target: str
    value: int = 1
    type: str = "follows"

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "target": self.target, "value": self.value, "type": self.type}


@dataclass(frozen=True)
class VisGraph:
    """Nodes/links structure consumed by the graph UI."""
    nodes: List[VisNode]
    links: List[VisLink]
    generated_at: int
    last_updated: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node_ids(self) -> Set[str]:
        return {n.id for n in self.nodes}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [l.to_dict() for l in self.links],
            "generatedAt": self.generated_at,
            "timestamp": self.last_updated,
        }
