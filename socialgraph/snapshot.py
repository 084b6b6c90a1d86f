"""
Graph Snapshot

Every observed identity with its follow edges, interactions and metadata.
Merge-only: operations add edges and interactions, nothing is removed.

Invariant: follows/followers are symmetric. add_follows() writes both
directions in the same call.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .types import InteractionKind, MemberRecord, ProfileMetadata, Zap


class GraphSnapshot:
    """Mapping of identity -> MemberRecord plus the commit timestamp."""

    def __init__(
        self,
        members: Optional[Dict[str, MemberRecord]] = None,
        last_updated: int = 0
    ):
        self.members: Dict[str, MemberRecord] = dict(members or {})
        self.last_updated = last_updated

    def ensure_member(self, identity: str) -> MemberRecord:
        member = self.members.get(identity)
        if member is None:
            member = MemberRecord()
            self.members[identity] = member
        return member

    def get(self, identity: str) -> Optional[MemberRecord]:
        return self.members.get(identity)

    def __contains__(self, identity: str) -> bool:
        return identity in self.members

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self) -> Iterator[str]:
        return iter(self.members)

    # =========================================================================
    # Merge operations
    # =========================================================================

    def add_follows(self, follower: str, followed: Iterable[str]) -> List[str]:
        """
        Union follow edges and their follower back-edges.

        Returns:
            Identities that were not followed before
        """
        source = self.ensure_member(follower)
        added = []
        for target in followed:
            if target == follower:
                continue
            if target not in source.follows:
                source.follows.add(target)
                added.append(target)
            self.ensure_member(target).followers.add(follower)
        return added

    def add_interaction(self, target: str, kind: InteractionKind, author: str) -> bool:
        interactions = self.ensure_member(target).interactions(kind)
        if author in interactions:
            return False
        interactions.add(author)
        return True

    def add_zap(self, target: str, zap: Zap) -> bool:
        member = self.ensure_member(target)
        if zap in member.zaps:
            return False
        member.zaps.append(zap)
        return True

    def set_metadata(self, identity: str, metadata: ProfileMetadata):
        self.ensure_member(identity).metadata = metadata

    # =========================================================================
    # Invariant checks
    # =========================================================================

    def referenced_identities(self) -> Set[str]:
        """Every identity appearing as a member or an edge/interaction endpoint."""
        seen = set(self.members)
        for member in self.members.values():
            seen.update(member.follows, member.followers)
            seen.update(member.mentions, member.likes, member.reposts)
            seen.update(z.target for z in member.zaps)
        return seen

    def symmetry_violations(self) -> List[Tuple[str, str]]:
        """(a, b) pairs where a follows b but b.followers lacks a, or vice versa."""
        violations = []
        for a, member in self.members.items():
            for b in member.follows:
                other = self.members.get(b)
                if other is None or a not in other.followers:
                    violations.append((a, b))
            for b in member.followers:
                other = self.members.get(b)
                if other is None or a not in other.follows:
                    violations.append((b, a))
        return violations

    def repair_symmetry(self) -> int:
        """Add any missing back-edges. Returns the number added."""
        repaired = 0
        for a, b in self.symmetry_violations():
            self.ensure_member(a).follows.add(b)
            self.ensure_member(b).followers.add(a)
            repaired += 1
        return repaired

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict:
        return {
            "lastUpdated": self.last_updated,
            "members": {i: self.members[i].to_dict() for i in sorted(self.members)},
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "GraphSnapshot":
        if not data:
            return cls()
        members = {
            identity: MemberRecord.from_dict(value)
            for identity, value in data.get("members", {}).items()
        }
        return cls(members, int(data.get("lastUpdated", 0)))

    def copy(self) -> "GraphSnapshot":
        return GraphSnapshot(
            {i: m.copy() for i, m in self.members.items()},
            self.last_updated,
        )
