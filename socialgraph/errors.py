"""
Social Graph Errors

Error taxonomy for the aggregator:
- Endpoint failures are absorbed by the relay client
- Malformed records and bad identities are dropped where they occur
- Persistence failures are fatal for the current run and propagate
"""


class SocialGraphError(Exception):
    """Base class for all aggregator errors."""


class ConfigError(SocialGraphError):
    """Invalid configuration value."""


class IdentityDecodeError(SocialGraphError):
    """Identity string could not be decoded or encoded."""


class MalformedRecordError(SocialGraphError):
    """Relay record is missing fields or carries undecodable content."""


class RelayError(SocialGraphError):
    """Relay endpoint unreachable or violated the protocol."""

    def __init__(self, endpoint: str, message: str):
        super().__init__(f"{endpoint}: {message}")
        self.endpoint = endpoint


class PersistenceError(SocialGraphError):
    """Registry or snapshot document could not be read or written."""


class AggregationInProgressError(SocialGraphError):
    """A second aggregation pass was requested while one is running."""
