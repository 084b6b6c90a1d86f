"""
Social Graph Configuration

All tunables for relay queries, aggregation and the read path.
Values can be overridden through environment variables (or a .env file).

Usage:
    config = GraphConfig.from_env()
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigError


DEFAULT_RELAYS = [
    "wss://relay.damus.io",
    "wss://relay.primal.net",
    "wss://nos.lol",
    "wss://nostr.wine",
    "wss://relay.snort.social",
]

# Free Madeira
DEFAULT_CORE_NPUBS = [
    "npub1etgqcj9gc6yaxttuwu9eqgs3ynt2dzaudvwnrssrn2zdt2useaasfj8n6e",
]

# Madtrips agency
DEFAULT_AGENCY_NPUBS = [
    "npub1dxd02kcjhgpkyrx60qnkd6j42kmc72u5lum0rp2ud8x5zfhnk4zscjj6hh",
]

DAY_SECONDS = 24 * 60 * 60


@dataclass
class GraphConfig:
    """Configuration for the social graph aggregator."""
    # Relays
    relays: List[str] = field(default_factory=lambda: list(DEFAULT_RELAYS))
    query_timeout_ms: int = 10_000
    max_concurrent_connections: int = 4
    connect_stagger_ms: int = 100
    max_events_per_query: int = 500

    # Aggregation
    lookback_days: int = 7
    followed_metadata_limit: int = 200
    core_npubs: List[str] = field(default_factory=lambda: list(DEFAULT_CORE_NPUBS))
    agency_npubs: List[str] = field(default_factory=lambda: list(DEFAULT_AGENCY_NPUBS))

    # Read path
    cache_max_age_ms: int = 60 * 60 * 1000

    # Storage
    data_dir: str = "./data"
    snapshot_filename: str = "social-graph.json"
    registry_filename: str = "known-pubkeys.json"

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Reject values that would make a pass unbounded or empty."""
        positive = {
            "query_timeout_ms": self.query_timeout_ms,
            "max_concurrent_connections": self.max_concurrent_connections,
            "max_events_per_query": self.max_events_per_query,
            "lookback_days": self.lookback_days,
            "cache_max_age_ms": self.cache_max_age_ms,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")
        if self.connect_stagger_ms < 0:
            raise ConfigError(f"connect_stagger_ms must be >= 0, got {self.connect_stagger_ms}")
        if self.followed_metadata_limit < 0:
            raise ConfigError(
                f"followed_metadata_limit must be >= 0, got {self.followed_metadata_limit}"
            )
        if not self.relays:
            raise ConfigError("at least one relay endpoint is required")

    @property
    def lookback_seconds(self) -> int:
        return self.lookback_days * DAY_SECONDS

    @property
    def snapshot_path(self) -> Path:
        return Path(self.data_dir) / self.snapshot_filename

    @property
    def registry_path(self) -> Path:
        return Path(self.data_dir) / self.registry_filename

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "GraphConfig":
        """Build config from SOCIALGRAPH_* environment variables."""
        load_dotenv(env_file)
        defaults = cls()

        def int_var(name: str, default: int) -> int:
            raw = os.getenv(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return int(raw)
            except ValueError as e:
                raise ConfigError(f"{name} must be an integer, got {raw!r}") from e

        def list_var(name: str, default: List[str]) -> List[str]:
            raw = os.getenv(name)
            if raw is None or raw.strip() == "":
                return list(default)
            return [item.strip() for item in raw.split(",") if item.strip()]

        return cls(
            relays=list_var("SOCIALGRAPH_RELAYS", defaults.relays),
            query_timeout_ms=int_var("SOCIALGRAPH_QUERY_TIMEOUT_MS", defaults.query_timeout_ms),
            max_concurrent_connections=int_var(
                "SOCIALGRAPH_MAX_CONNECTIONS", defaults.max_concurrent_connections
            ),
            connect_stagger_ms=int_var(
                "SOCIALGRAPH_CONNECT_STAGGER_MS", defaults.connect_stagger_ms
            ),
            max_events_per_query=int_var("SOCIALGRAPH_MAX_EVENTS", defaults.max_events_per_query),
            lookback_days=int_var("SOCIALGRAPH_LOOKBACK_DAYS", defaults.lookback_days),
            followed_metadata_limit=int_var(
                "SOCIALGRAPH_FOLLOWED_METADATA_LIMIT", defaults.followed_metadata_limit
            ),
            core_npubs=list_var("SOCIALGRAPH_CORE_NPUBS", defaults.core_npubs),
            agency_npubs=list_var("SOCIALGRAPH_AGENCY_NPUBS", defaults.agency_npubs),
            cache_max_age_ms=int_var("SOCIALGRAPH_CACHE_MAX_AGE_MS", defaults.cache_max_age_ms),
            data_dir=os.getenv("SOCIALGRAPH_DATA_DIR") or defaults.data_dir,
        )
