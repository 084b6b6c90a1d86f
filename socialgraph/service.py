"""
Social Graph Service

Read and write paths over the aggregator:
- get_graph():          serve the last committed snapshot (never waits on a pass)
- force_refresh():      run a pass, or join the one already running
- add_known_identity(): register an identity with an explicit group, then refresh
- run_scheduled():      periodic refresh loop

Readers only ever see a state returned by a committed pass (or loaded from
the store); the running pass works on its own copies. State committed by
another process (e.g. a CLI update) is picked up on the next read.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from .aggregator import AggregationOrchestrator, PassResult, now_ms
from .cache_gate import CacheDecision, SnapshotCacheGate
from .config import GraphConfig
from .errors import PersistenceError, SocialGraphError
from .exporter import export_graph
from .identity import normalize_identity
from .registry import KnownIdentityRegistry
from .relay.client import RelayClientConfig, RelayQueryClient
from .snapshot import GraphSnapshot
from .store import GraphStateStore
from .types import Group, VisGraph


class SocialGraphService:
    """Facade used by the CLI and any HTTP trigger."""

    def __init__(
        self,
        orchestrator: AggregationOrchestrator,
        state_store: GraphStateStore,
        config: Optional[GraphConfig] = None
    ):
        self.config = config or GraphConfig()
        self._orchestrator = orchestrator
        self._state_store = state_store
        self._gate = SnapshotCacheGate(self.config.cache_max_age_ms)
        self._logger = logging.getLogger("SocialGraphService")

        self._committed: Optional[Tuple[KnownIdentityRegistry, GraphSnapshot]] = None
        self._committed_version: Optional[Any] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    # =========================================================================
    # Read path
    # =========================================================================

    async def _committed_state(self) -> Tuple[KnownIdentityRegistry, GraphSnapshot]:
        """Cached committed state, reloaded when the store version changes."""
        loop = asyncio.get_event_loop()
        version = await loop.run_in_executor(None, self._state_store.version)
        if self._committed is None or version != self._committed_version:
            self._committed = await loop.run_in_executor(None, self._state_store.load)
            self._committed_version = version
            self._logger.debug(f"Loaded committed state (version {version})")
        return self._committed

    async def get_graph(self) -> VisGraph:
        """
        Export the committed graph.

        A stale or missing snapshot schedules a background refresh; the
        current (possibly empty) graph is returned immediately.
        """
        registry, snapshot = await self._committed_state()
        now = now_ms()

        decision = self._gate.decide(snapshot.last_updated, now, self.is_refreshing)
        if decision == CacheDecision.REFRESH:
            self._logger.info("Snapshot stale, scheduling background refresh")
            self._start_refresh()

        return export_graph(snapshot, registry, now)

    async def get_known_identities(self) -> Dict:
        registry, _ = await self._committed_state()
        return registry.to_dict()

    async def get_raw_snapshot(self) -> Dict:
        _, snapshot = await self._committed_state()
        return snapshot.to_dict()

    # =========================================================================
    # Write path
    # =========================================================================

    def _start_refresh(self) -> asyncio.Task:
        if self.is_refreshing:
            return self._refresh_task
        self._refresh_task = asyncio.create_task(self._refresh())
        self._refresh_task.add_done_callback(self._on_refresh_done)
        return self._refresh_task

    async def _refresh(self) -> PassResult:
        result = await self._orchestrator.run_pass()
        loop = asyncio.get_event_loop()
        self._committed_version = await loop.run_in_executor(None, self._state_store.version)
        self._committed = (result.registry, result.snapshot)
        return result

    def _on_refresh_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._logger.error(f"Refresh failed: {error!r}")

    async def force_refresh(self) -> VisGraph:
        """Run a pass (or join the running one) and export its result."""
        result = await self._start_refresh()
        return export_graph(result.snapshot, result.registry, now_ms())

    async def add_known_identity(self, identity: str, group: Group = Group.OTHER) -> VisGraph:
        """
        Register an identity (npub or hex) with an explicit group and refresh.

        The assignment is committed by the orchestrator's next pass. A pass
        already running may have loaded state before the assignment was
        queued, so it is awaited and a new pass is started after it.

        Raises:
            IdentityDecodeError: identity cannot be decoded
        """
        hex_key = normalize_identity(identity)
        self._orchestrator.assign_group(hex_key, group)

        running = self._refresh_task if self.is_refreshing else None
        if running is not None:
            await asyncio.gather(running, return_exceptions=True)

        return await self.force_refresh()

    async def run_scheduled(self, interval_hours: float, iterations: Optional[int] = None):
        """Refresh now, then every interval_hours."""
        completed = 0
        while iterations is None or completed < iterations:
            try:
                await self.force_refresh()
            except PersistenceError as e:
                self._logger.error(f"Scheduled refresh could not persist: {e}")
            except SocialGraphError as e:
                self._logger.error(f"Scheduled refresh failed: {e}")

            completed += 1
            if iterations is not None and completed >= iterations:
                break
            await asyncio.sleep(interval_hours * 3600)


def build_service(config: Optional[GraphConfig] = None) -> SocialGraphService:
    """Wire client, stores and orchestrator from config."""
    config = config or GraphConfig.from_env()
    client = RelayQueryClient(RelayClientConfig.from_graph_config(config))
    state_store = GraphStateStore.from_config(config)
    orchestrator = AggregationOrchestrator(client, state_store, config)
    return SocialGraphService(orchestrator, state_store, config)
