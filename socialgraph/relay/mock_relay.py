"""
Mock Relay Network

Scripted in-process relays that speak the REQ/EVENT/EOSE/CLOSE protocol.

Use cases:
- Unit testing the relay client without network access
- Stalling queries about chosen identities to exercise timeouts
- Driving full aggregation passes offline

Usage:
    network = MockRelayNetwork()
    network.add_relay("wss://a", events=[make_event(pk, 3, 1700000000, tags=[["p", other]])])
    client = RelayQueryClient(config, connect=network.connect)
"""

import asyncio
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def make_event(
    pubkey: str,
    kind: int,
    created_at: int,
    tags: Optional[List[List[str]]] = None,
    content: str = ""
) -> Dict[str, Any]:
    """Build an event dict with a content-derived id."""
    tags = [list(t) for t in (tags or [])]
    serialized = json.dumps([0, pubkey, created_at, kind, tags, content], separators=(",", ":"))
    return {
        "id": hashlib.sha256(serialized.encode("utf-8")).hexdigest(),
        "pubkey": pubkey,
        "created_at": created_at,
        "kind": kind,
        "tags": tags,
        "content": content,
        "sig": "0" * 128,
    }


def event_matches(relay_filter: Dict[str, Any], event: Dict[str, Any]) -> bool:
    """Filter matching for the subset of fields the client sends."""
    if "kinds" in relay_filter and event.get("kind") not in relay_filter["kinds"]:
        return False
    if "authors" in relay_filter and event.get("pubkey") not in relay_filter["authors"]:
        return False
    if "#p" in relay_filter:
        referenced = {t[1] for t in event.get("tags", []) if len(t) >= 2 and t[0] == "p"}
        if referenced.isdisjoint(relay_filter["#p"]):
            return False
    if "since" in relay_filter and event.get("created_at", 0) < relay_filter["since"]:
        return False
    return True


@dataclass
class MockRelay:
    """One scripted relay endpoint."""
    url: str
    events: List[Dict[str, Any]] = field(default_factory=list)
    send_eose: bool = True           # False: never signals end of stored events
    fail_on_connect: bool = False    # True: connection attempt raises
    hang_up: bool = False            # True: connection ends after stored events
    extra_frames: List[str] = field(default_factory=list)  # sent before stored events
    stall_for: List[str] = field(default_factory=list)    # REQs naming these identities get no reply
    requests: List[Dict[str, Any]] = field(default_factory=list)
    closes: int = 0

    def stored_matches(self, relay_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        matched = [e for e in self.events if event_matches(relay_filter, e)]
        matched.sort(key=lambda e: e["created_at"], reverse=True)
        limit = relay_filter.get("limit")
        return matched[:limit] if limit is not None else matched

    def stalls(self, relay_filter: Dict[str, Any]) -> bool:
        named = set(relay_filter.get("authors", [])) | set(relay_filter.get("#p", []))
        return not named.isdisjoint(self.stall_for)


class MockRelayConnection:
    """Async context manager + async iterator, like a websockets connection."""

    def __init__(self, network: "MockRelayNetwork", relay: MockRelay):
        self._network = network
        self._relay = relay
        self._outbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def __aenter__(self):
        if self._relay.fail_on_connect:
            raise ConnectionRefusedError(f"mock relay {self._relay.url} refused connection")
        self._network.connection_opened()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True
        self._network.connection_closed()
        return False

    async def send(self, message: str):
        frame = json.loads(message)
        if frame[0] == "REQ":
            sub_id, relay_filter = frame[1], frame[2]
            self._relay.requests.append(relay_filter)
            if self._relay.stalls(relay_filter):
                return
            for raw in self._relay.extra_frames:
                self._outbox.put_nowait(raw)
            for event in self._relay.stored_matches(relay_filter):
                self._outbox.put_nowait(json.dumps(["EVENT", sub_id, event]))
            if self._relay.send_eose:
                self._outbox.put_nowait(json.dumps(["EOSE", sub_id]))
        elif frame[0] == "CLOSE":
            self._relay.closes += 1

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if self._relay.hang_up and self._outbox.empty():
            raise StopAsyncIteration
        # Without EOSE the connection stays open until cancelled
        return await self._outbox.get()


class MockRelayNetwork:
    """Registry of mock relays; `connect` is a drop-in connect factory."""

    def __init__(self):
        self.relays: Dict[str, MockRelay] = {}
        self.open_connections = 0
        self.max_open_connections = 0
        self.connections_opened = 0

    def add_relay(self, url: str, **kwargs) -> MockRelay:
        relay = MockRelay(url=url, **kwargs)
        self.relays[url] = relay
        return relay

    def publish(self, event: Dict[str, Any], urls: Optional[List[str]] = None):
        """Store an event on the given relays (all relays by default)."""
        for url in urls or list(self.relays):
            self.relays[url].events.append(event)

    def connect(self, url: str) -> MockRelayConnection:
        relay = self.relays.get(url)
        if relay is None:
            relay = MockRelay(url=url, fail_on_connect=True)
        return MockRelayConnection(self, relay)

    def connection_opened(self):
        self.open_connections += 1
        self.connections_opened += 1
        self.max_open_connections = max(self.max_open_connections, self.open_connections)

    def connection_closed(self):
        self.open_connections -= 1
