"""
Aggregation Orchestrator

One pass over every tracked (core and agency) identity:
1. FetchMetadata         - latest kind-0 profile
2. FetchFollows          - latest kind-3 follow list, merged by union
3. RegisterNewFollowed   - followed identities registered as "other",
                           follower back-edges added in the same merge
4. FetchFollowedMetadata - profiles for followed identities without one
5. FetchInteractions     - notes, reposts, reactions and zaps referencing
                           the identity within the lookback window

The pass works on fresh copies of the committed registry and snapshot and
commits both once at the end. A failure for one identity is logged and
skipped; only persistence failures abort the pass.

Usage:
    orchestrator = AggregationOrchestrator(client, GraphStateStore.from_config(cfg), cfg)
    result = await orchestrator.run_pass()
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config import GraphConfig
from .errors import AggregationInProgressError, IdentityDecodeError, MalformedRecordError
from .identity import normalize_identity
from .registry import KnownIdentityRegistry
from .relay.client import RelayQueryClient
from .relay.filters import (
    INTERACTION_KINDS,
    KIND_FOLLOW_LIST,
    KIND_PROFILE,
    RelayFilter,
    RelayRecord,
)
from .relay.records import (
    FollowListRecord,
    MentionRecord,
    ProfileRecord,
    ReactionRecord,
    RecordVariant,
    RepostRecord,
    UnknownRecord,
    ZapRecord,
    classify_record_kind,
    latest_per_author,
)
from .snapshot import GraphSnapshot
from .store import GraphStateStore
from .types import Group, InteractionKind


AUTHORS_PER_QUERY = 100


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PassResult:
    """Outcome of one committed aggregation pass."""
    registry: KnownIdentityRegistry
    snapshot: GraphSnapshot
    started_at: int
    finished_at: int
    processed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    new_identities: int = 0


@dataclass
class _PassContext:
    registry: KnownIdentityRegistry
    snapshot: GraphSnapshot
    now_ms: int
    since: int
    new_identities: int = 0

    def register(self, identity: str) -> bool:
        is_new = self.registry.ensure(identity, self.now_ms)
        if is_new:
            self.new_identities += 1
        return is_new


class AggregationOrchestrator:
    """
    Single-writer aggregation driver.

    Identities are processed concurrently; relay connections are bounded by
    the client's connection semaphore.
    """

    def __init__(
        self,
        client: RelayQueryClient,
        state_store: GraphStateStore,
        config: Optional[GraphConfig] = None,
        clock: Optional[Callable[[], int]] = None
    ):
        self.config = config or GraphConfig()
        self._client = client
        self._state_store = state_store
        self._clock = clock or now_ms
        self._logger = logging.getLogger("AggregationOrchestrator")
        self._lock = asyncio.Lock()
        self._pending_groups: Dict[str, Group] = {}

        self._core_seeds = self._decode_seeds(self.config.core_npubs, "core")
        self._agency_seeds = self._decode_seeds(self.config.agency_npubs, "agency")

        self._handlers = {
            ProfileRecord: self._merge_profile,
            FollowListRecord: self._merge_follow_list,
            MentionRecord: self._merge_mention,
            RepostRecord: self._merge_repost,
            ReactionRecord: self._merge_reaction,
            ZapRecord: self._merge_zap,
            UnknownRecord: self._merge_unknown,
        }

    def _decode_seeds(self, npubs: List[str], group: str) -> List[str]:
        seeds = []
        for npub in npubs:
            try:
                seeds.append(normalize_identity(npub))
            except IdentityDecodeError as e:
                self._logger.warning(f"Skipping undecodable {group} seed: {e}")
        return seeds

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def assign_group(self, identity: str, group: Group):
        """
        Queue an explicit group assignment.

        Applied by the next pass right after it loads state, so the single
        writer commits it. Kept queued until a pass commits successfully.
        """
        self._pending_groups[identity] = group
        self._logger.info(f"Queued {identity} as {group.value}")

    # =========================================================================
    # Pass
    # =========================================================================

    async def run_pass(self) -> PassResult:
        """
        Run one full aggregation pass and commit it.

        Raises:
            AggregationInProgressError: a pass is already running
            PersistenceError: state could not be loaded or committed
        """
        if self._lock.locked():
            raise AggregationInProgressError("aggregation pass already running")

        async with self._lock:
            return await self._run_pass()

    async def _run_pass(self) -> PassResult:
        started = self._clock()
        registry, snapshot = self._state_store.load()
        pending = dict(self._pending_groups)
        for identity, group in pending.items():
            registry.assign(identity, group, started)
        registry.seed(self._core_seeds, self._agency_seeds, started)

        tracked = registry.tracked()
        for identity in tracked:
            snapshot.ensure_member(identity)

        ctx = _PassContext(
            registry=registry,
            snapshot=snapshot,
            now_ms=started,
            since=started // 1000 - self.config.lookback_seconds,
        )
        self._logger.info(f"Aggregation pass started: {len(tracked)} tracked identities")

        outcomes = await asyncio.gather(
            *(self._process_identity(ctx, identity) for identity in tracked)
        )

        result = PassResult(registry=registry, snapshot=snapshot, started_at=started, finished_at=0)
        for identity, error in zip(tracked, outcomes):
            if error is None:
                result.processed.append(identity)
            else:
                result.failed[identity] = error

        self._finalize(ctx)

        finished = self._clock()
        registry.last_updated = finished
        snapshot.last_updated = finished
        self._state_store.commit(registry, snapshot)
        for identity, group in pending.items():
            if self._pending_groups.get(identity) == group:
                del self._pending_groups[identity]

        result.finished_at = finished
        result.new_identities = ctx.new_identities
        self._logger.info(
            f"Aggregation pass committed: {len(result.processed)} ok, "
            f"{len(result.failed)} failed, {ctx.new_identities} new identities, "
            f"{len(snapshot)} members in {(finished - started) / 1000:.1f}s"
        )
        return result

    async def _process_identity(self, ctx: _PassContext, identity: str) -> Optional[str]:
        """
        Run every fetch step for one identity.

        Returns:
            None on success, otherwise the failure description
        """
        operation = "metadata"
        try:
            await self._fetch_metadata(ctx, identity)

            operation = "follows"
            follows = await self._fetch_follows(ctx, identity)

            operation = "followed_metadata"
            await self._fetch_followed_metadata(ctx, follows)

            operation = "interactions"
            await self._fetch_interactions(ctx, identity)
            return None

        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.warning(f"Skipping {identity} after {operation} failure: {e!r}")
            return f"{operation}: {e!r}"

    def _finalize(self, ctx: _PassContext):
        """Restore cross-record invariants before commit."""
        repaired = ctx.snapshot.repair_symmetry()
        if repaired:
            self._logger.warning(f"Repaired {repaired} asymmetric follow edges")

        for identity in ctx.snapshot.referenced_identities():
            if identity not in ctx.registry:
                ctx.register(identity)

    # =========================================================================
    # Fetch steps
    # =========================================================================

    async def _query(self, relay_filter: RelayFilter) -> List[RelayRecord]:
        return await self._client.query(
            self.config.relays, relay_filter, self.config.query_timeout_ms
        )

    async def _fetch_metadata(self, ctx: _PassContext, identity: str):
        records = await self._query(
            RelayFilter(kinds=[KIND_PROFILE], authors=[identity], limit=1)
        )
        self._apply_latest(ctx, identity, records, KIND_PROFILE)

    async def _fetch_follows(self, ctx: _PassContext, identity: str) -> List[str]:
        records = await self._query(
            RelayFilter(kinds=[KIND_FOLLOW_LIST], authors=[identity], limit=1)
        )
        variant = self._apply_latest(ctx, identity, records, KIND_FOLLOW_LIST)
        return variant.follows if isinstance(variant, FollowListRecord) else []

    async def _fetch_followed_metadata(self, ctx: _PassContext, follows: List[str]):
        limit = self.config.followed_metadata_limit
        missing = [
            f for f in follows
            if ctx.snapshot.get(f) is None or ctx.snapshot.get(f).metadata is None
        ][:limit]

        for start in range(0, len(missing), AUTHORS_PER_QUERY):
            chunk = missing[start:start + AUTHORS_PER_QUERY]
            records = await self._query(
                RelayFilter(kinds=[KIND_PROFILE], authors=chunk, limit=len(chunk))
            )
            wanted = set(chunk)
            for author, record in latest_per_author(records, KIND_PROFILE).items():
                if author in wanted:
                    self._apply_record(ctx, author, record)

    async def _fetch_interactions(self, ctx: _PassContext, identity: str):
        records = await self._query(
            RelayFilter(
                kinds=INTERACTION_KINDS,
                referenced_identity=identity,
                since=ctx.since,
                limit=self.config.max_events_per_query,
            )
        )
        for record in records:
            if record.created_at < ctx.since:
                continue
            self._apply_record(ctx, identity, record)

    # =========================================================================
    # Record dispatch
    # =========================================================================

    def _apply_latest(
        self,
        ctx: _PassContext,
        identity: str,
        records: List[RelayRecord],
        kind: int
    ) -> Optional[RecordVariant]:
        """Apply the newest decodable record of `kind` authored by identity."""
        candidates = sorted(
            (r for r in records if r.kind == kind and r.pubkey == identity),
            key=lambda r: (r.created_at, r.id),
            reverse=True,
        )
        for record in candidates:
            variant = self._apply_record(ctx, identity, record)
            if variant is not None:
                return variant
        return None

    def _apply_record(
        self,
        ctx: _PassContext,
        target: str,
        record: RelayRecord
    ) -> Optional[RecordVariant]:
        try:
            variant = classify_record_kind(record, target)
        except MalformedRecordError as e:
            self._logger.debug(f"Dropping record for {target}: {e}")
            return None

        self._handlers[type(variant)](ctx, target, variant)
        return variant

    def _merge_profile(self, ctx: _PassContext, target: str, record: ProfileRecord):
        ctx.snapshot.set_metadata(record.author, record.metadata)

    def _merge_follow_list(self, ctx: _PassContext, target: str, record: FollowListRecord):
        for followed in record.follows:
            ctx.register(followed)
        ctx.snapshot.add_follows(record.author, record.follows)

    def _merge_interaction(
        self,
        ctx: _PassContext,
        target: str,
        kind: InteractionKind,
        author: str
    ):
        ctx.register(author)
        ctx.snapshot.add_interaction(target, kind, author)

    def _merge_mention(self, ctx: _PassContext, target: str, record: MentionRecord):
        self._merge_interaction(ctx, target, InteractionKind.MENTION, record.author)

    def _merge_repost(self, ctx: _PassContext, target: str, record: RepostRecord):
        self._merge_interaction(ctx, target, InteractionKind.REPOST, record.author)

    def _merge_reaction(self, ctx: _PassContext, target: str, record: ReactionRecord):
        self._merge_interaction(ctx, target, InteractionKind.LIKE, record.author)

    def _merge_zap(self, ctx: _PassContext, target: str, record: ZapRecord):
        # Receipt author is the payment service, not a community member
        ctx.snapshot.add_zap(record.zap.target, record.zap)

    def _merge_unknown(self, ctx: _PassContext, target: str, record: UnknownRecord):
        self._logger.debug(f"Ignoring kind {record.kind} record for {target}")
