"""
Known-Identity Registry

Every identity ever observed, with its group and first/last-seen timestamps.
Entries are only added or updated, never removed.

Document format:
    {"lastUpdated": <ms>, "npubs": {<hex>: {"group", "firstSeen", "lastSeen"}}}
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .types import Group, KnownIdentityEntry


class KnownIdentityRegistry:
    """In-memory registry, loaded from and committed to a document store."""

    def __init__(
        self,
        entries: Optional[Dict[str, KnownIdentityEntry]] = None,
        last_updated: int = 0
    ):
        self._entries: Dict[str, KnownIdentityEntry] = dict(entries or {})
        self.last_updated = last_updated
        self._logger = logging.getLogger("KnownIdentityRegistry")

    # =========================================================================
    # Mutation
    # =========================================================================

    def ensure(self, identity: str, now_ms: int, group: Group = Group.OTHER) -> bool:
        """
        Record a sighting.

        Inserts on first sighting with the given group. An existing entry keeps
        its group and only has last_seen bumped.

        Returns:
            True if the identity was new
        """
        entry = self._entries.get(identity)
        if entry is None:
            self._entries[identity] = KnownIdentityEntry(
                identity=identity,
                group=group,
                first_seen=now_ms,
                last_seen=now_ms,
            )
            return True

        entry.last_seen = max(entry.last_seen, now_ms)
        return False

    def assign(self, identity: str, group: Group, now_ms: int) -> KnownIdentityEntry:
        """Explicitly set an identity's group, keeping first_seen."""
        entry = self._entries.get(identity)
        if entry is None:
            entry = KnownIdentityEntry(identity, group, now_ms, now_ms)
            self._entries[identity] = entry
        else:
            if entry.group != group:
                self._logger.info(f"Regrouping {identity}: {entry.group.value} -> {group.value}")
            entry.group = group
            entry.last_seen = max(entry.last_seen, now_ms)
        return entry

    def seed(self, core: Iterable[str], agency: Iterable[str], now_ms: int):
        """Insert configured seed identities that are not yet registered."""
        for identity in core:
            if identity not in self._entries:
                self.assign(identity, Group.CORE, now_ms)
        for identity in agency:
            if identity not in self._entries:
                self.assign(identity, Group.AGENCY, now_ms)

    # =========================================================================
    # Querying
    # =========================================================================

    def get(self, identity: str) -> Optional[KnownIdentityEntry]:
        return self._entries.get(identity)

    def identities_in(self, group: Group) -> List[str]:
        return [i for i, e in self._entries.items() if e.group == group]

    def core_set(self) -> Set[str]:
        return set(self.identities_in(Group.CORE))

    def tracked(self) -> List[str]:
        """Identities the aggregator fetches data for (core, then agency)."""
        return self.identities_in(Group.CORE) + self.identities_in(Group.AGENCY)

    def __contains__(self, identity: str) -> bool:
        return identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict:
        return {
            "lastUpdated": self.last_updated,
            "npubs": {i: self._entries[i].to_dict() for i in sorted(self._entries)},
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "KnownIdentityRegistry":
        if not data:
            return cls()
        entries = {
            identity: KnownIdentityEntry.from_dict(identity, value)
            for identity, value in data.get("npubs", {}).items()
        }
        return cls(entries, int(data.get("lastUpdated", 0)))

    def copy(self) -> "KnownIdentityRegistry":
        return KnownIdentityRegistry(
            {
                i: KnownIdentityEntry(e.identity, e.group, e.first_seen, e.last_seen)
                for i, e in self._entries.items()
            },
            self.last_updated,
        )
