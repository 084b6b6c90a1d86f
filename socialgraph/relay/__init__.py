"""
Relay Layer

Components:
- filters.py: REQ filters and validated relay records
- client.py: Fan-out query client over websocket relays
- records.py: Record kind classification into merge variants
"""

from .filters import RelayFilter, RelayRecord
from .client import RelayQueryClient, RelayClientConfig
from .records import classify_record_kind, select_latest, latest_per_author

__all__ = [
    "RelayFilter",
    "RelayRecord",
    "RelayQueryClient",
    "RelayClientConfig",
    "classify_record_kind",
    "select_latest",
    "latest_per_author",
]
