"""
Relay Query Client

Fan-out query against a set of relay websocket endpoints.

Each query:
- Opens a fresh connection per endpoint (no reuse across calls)
- Sends one REQ and collects EVENT messages until EOSE
- Finishes when every endpoint sent EOSE or hit its timeout
- Times each endpoint from when it holds a connection slot
- Returns records de-duplicated by id, in arrival order

Endpoints that fail contribute only what arrived before the failure. There
are no retries within a call, and one failing endpoint never cancels the
others.

Usage:
    client = RelayQueryClient(RelayClientConfig(max_concurrent_connections=4))
    records = await client.query(relays, RelayFilter(kinds=[0], authors=[pk], limit=1), 10_000)
"""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from functools import partial
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional

import websockets

from ..errors import MalformedRecordError, RelayError
from .filters import RelayFilter, RelayRecord, encode_close, encode_req


ConnectFactory = Callable[[str], AsyncContextManager[Any]]


@dataclass
class RelayClientConfig:
    """Configuration for relay queries."""
    max_concurrent_connections: int = 4
    connect_stagger_ms: int = 100
    default_timeout_ms: int = 10_000
    open_timeout: float = 5.0
    close_timeout: float = 1.0
    max_message_size: int = 2 ** 22

    @classmethod
    def from_graph_config(cls, config) -> "RelayClientConfig":
        return cls(
            max_concurrent_connections=config.max_concurrent_connections,
            connect_stagger_ms=config.connect_stagger_ms,
            default_timeout_ms=config.query_timeout_ms,
        )


class RelayQueryClient:
    """
    Best-effort relay fan-out client.

    Connections across all concurrent queries of one client share a
    semaphore of max_concurrent_connections. Connection attempts are spaced
    connect_stagger_ms apart, and the spacing is not taken while holding a slot.
    """

    def __init__(
        self,
        config: Optional[RelayClientConfig] = None,
        connect: Optional[ConnectFactory] = None
    ):
        self.config = config or RelayClientConfig()
        self._logger = logging.getLogger("RelayQueryClient")
        self._connect = connect or partial(
            websockets.connect,
            open_timeout=self.config.open_timeout,
            close_timeout=self.config.close_timeout,
            max_size=self.config.max_message_size,
        )
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_connections)
        self._next_connect_at = 0.0
        self._stats = {
            "queries": 0,
            "endpoint_failures": 0,
            "timeouts": 0,
            "records_received": 0,
            "duplicates_dropped": 0,
            "malformed_dropped": 0,
        }

    async def query(
        self,
        endpoints: List[str],
        relay_filter: RelayFilter,
        timeout_ms: Optional[int] = None
    ) -> List[RelayRecord]:
        """
        Query all endpoints and merge their stored records.

        timeout_ms bounds each endpoint's subscription from the moment it
        holds a connection slot. An explicit 0 times out immediately.

        Returns:
            Records de-duplicated by id (first arrival wins)
        """
        if timeout_ms is None:
            timeout_ms = self.config.default_timeout_ms
        sub_id = uuid.uuid4().hex[:16]
        collected: Dict[str, RelayRecord] = {}
        self._stats["queries"] += 1

        if not endpoints:
            return []

        started = time.monotonic()
        unique = list(dict.fromkeys(endpoints))
        # Cancelling the caller cancels every subscription, which closes its connection
        timed_out = await asyncio.gather(*(
            self._query_endpoint(endpoint, sub_id, relay_filter, collected, timeout_ms)
            for endpoint in unique
        ))

        if any(timed_out):
            self._stats["timeouts"] += 1
            self._logger.warning(
                f"Query {relay_filter.kinds} timed out after {timeout_ms}ms, "
                f"{sum(timed_out)}/{len(unique)} endpoints without EOSE"
            )

        self._logger.debug(
            f"Query {relay_filter.kinds} returned {len(collected)} records "
            f"in {(time.monotonic() - started) * 1000:.0f}ms"
        )
        return list(collected.values())

    # =========================================================================
    # Per-endpoint subscription
    # =========================================================================

    async def _pace_connect(self):
        """Reserve the next connection start, connect_stagger_ms after the last one."""
        stagger = self.config.connect_stagger_ms / 1000
        if stagger <= 0:
            return
        now = time.monotonic()
        start_at = max(now, self._next_connect_at)
        self._next_connect_at = start_at + stagger
        if start_at > now:
            await asyncio.sleep(start_at - now)

    async def _query_endpoint(
        self,
        endpoint: str,
        sub_id: str,
        relay_filter: RelayFilter,
        collected: Dict[str, RelayRecord],
        timeout_ms: int
    ) -> bool:
        """
        Run one subscription. Errors are logged and absorbed.

        The stagger delay is taken before a slot is acquired, and the
        timeout only starts once the slot is held.

        Returns:
            True when the endpoint did not finish within timeout_ms
        """
        try:
            await self._pace_connect()
            async with self._semaphore:
                await asyncio.wait_for(
                    self._subscribe(endpoint, sub_id, relay_filter, collected),
                    timeout_ms / 1000
                )
            return False
        except asyncio.TimeoutError:
            self._logger.debug(f"Relay {endpoint} sent no EOSE within {timeout_ms}ms")
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._stats["endpoint_failures"] += 1
            self._logger.warning(f"Relay {endpoint} failed for {relay_filter.kinds}: {e!r}")
            return False

    async def _subscribe(
        self,
        endpoint: str,
        sub_id: str,
        relay_filter: RelayFilter,
        collected: Dict[str, RelayRecord]
    ):
        async with self._connect(endpoint) as ws:
            await ws.send(encode_req(sub_id, relay_filter))

            end_of_stored = False
            async for message in ws:
                if self._handle_message(endpoint, sub_id, relay_filter, message, collected):
                    end_of_stored = True
                    break

            if not end_of_stored:
                # Records that arrived before the hang-up stay collected
                raise RelayError(endpoint, "connection closed before EOSE")
            await ws.send(encode_close(sub_id))

    def _handle_message(
        self,
        endpoint: str,
        sub_id: str,
        relay_filter: RelayFilter,
        message: Any,
        collected: Dict[str, RelayRecord]
    ) -> bool:
        """
        Process one frame.

        Returns:
            True when the relay has no more stored records for this query
        """
        try:
            frame = json.loads(message)
        except (TypeError, ValueError):
            self._logger.debug(f"Relay {endpoint}: undecodable frame dropped")
            return False

        if not isinstance(frame, list) or not frame:
            return False

        msg_type = frame[0]

        if msg_type == "EVENT" and len(frame) >= 3 and frame[1] == sub_id:
            try:
                record = RelayRecord.from_event(frame[2])
            except MalformedRecordError as e:
                self._stats["malformed_dropped"] += 1
                self._logger.debug(f"Relay {endpoint}: malformed record dropped: {e}")
                return False

            if record.kind not in relay_filter.kinds:
                return False

            self._stats["records_received"] += 1
            if record.id in collected:
                self._stats["duplicates_dropped"] += 1
            else:
                collected[record.id] = record
            return False

        if msg_type == "EOSE" and len(frame) >= 2 and frame[1] == sub_id:
            return True

        if msg_type == "CLOSED" and len(frame) >= 2 and frame[1] == sub_id:
            reason = frame[2] if len(frame) > 2 else ""
            self._logger.info(f"Relay {endpoint} closed subscription: {reason}")
            return True

        if msg_type == "NOTICE":
            self._logger.debug(f"Relay {endpoint} notice: {frame[1:]}")

        return False

    def get_stats(self) -> Dict:
        """Get client statistics."""
        return dict(self._stats)
