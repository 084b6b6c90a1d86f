"""
Snapshot Cache Gate

Decides whether the committed snapshot can be served as-is.

The read path consults the gate and never waits on a running pass. A stale
snapshot is served as-is while a pass is in progress.
"""

from enum import Enum


class CacheDecision(Enum):
    SERVE_CACHED = "serve_cached"
    REFRESH = "refresh"
    SERVE_STALE = "serve_stale"


def is_fresh(last_updated_ms: int, now_ms: int, max_age_ms: int) -> bool:
    """True when a snapshot exists and is at most max_age_ms old."""
    if last_updated_ms <= 0:
        return False
    return now_ms - last_updated_ms <= max_age_ms


class SnapshotCacheGate:
    """Freshness policy for the read path."""

    def __init__(self, max_age_ms: int):
        self.max_age_ms = max_age_ms

    def is_fresh(self, last_updated_ms: int, now_ms: int) -> bool:
        return is_fresh(last_updated_ms, now_ms, self.max_age_ms)

    def decide(self, last_updated_ms: int, now_ms: int, refresh_running: bool) -> CacheDecision:
        if self.is_fresh(last_updated_ms, now_ms):
            return CacheDecision.SERVE_CACHED
        if refresh_running:
            return CacheDecision.SERVE_STALE
        return CacheDecision.REFRESH
