"""
Visualization Exporter

Builds the nodes/links graph consumed by the graph UI from the committed
snapshot and registry. Output is derived on every read and never persisted.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from .classifier import classify
from .errors import IdentityDecodeError
from .identity import hex_to_npub, shorten_npub
from .registry import KnownIdentityRegistry
from .snapshot import GraphSnapshot
from .types import NodeType, VisGraph, VisLink, VisNode


_logger = logging.getLogger("VisualizationExporter")


@dataclass(frozen=True)
class NodeStyle:
    color: str
    size: int


DEFAULT_STYLES: Dict[NodeType, NodeStyle] = {
    NodeType.CORE: NodeStyle("#9333EA", 10),       # purple
    NodeType.FOLLOWER: NodeStyle("#3B82F6", 5),    # blue
    NodeType.FOLLOWING: NodeStyle("#22C55E", 5),   # green
    NodeType.MUTUAL: NodeStyle("#F59E0B", 5),      # amber
    NodeType.UNRELATED: NodeStyle("#9CA3AF", 3),   # gray
}


def _encode(identity: str) -> str:
    try:
        return hex_to_npub(identity)
    except IdentityDecodeError:
        _logger.debug(f"Cannot encode identity {identity!r}")
        return "unknown"


def export_graph(
    snapshot: GraphSnapshot,
    registry: KnownIdentityRegistry,
    now_ms: Optional[int] = None,
    styles: Optional[Dict[NodeType, NodeStyle]] = None
) -> VisGraph:
    """
    Convert snapshot + registry into a VisGraph.

    Nodes: every identity in snapshot.members or the registry, snapshot
    order first. Links: one per follow edge whose endpoints are both nodes.
    """
    styles = styles or DEFAULT_STYLES
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    core_set = registry.core_set()

    identities = list(dict.fromkeys(list(snapshot.members) + list(registry)))

    nodes: List[VisNode] = []
    for identity in identities:
        member = snapshot.get(identity)
        node_type = classify(identity, core_set, member)
        style = styles[node_type]
        npub = _encode(identity)
        metadata = member.metadata if member else None

        name = None
        picture = None
        if metadata is not None:
            name = metadata.display_name or metadata.name
            picture = metadata.picture
        if not name:
            name = shorten_npub(npub if npub != "unknown" else identity)

        nodes.append(VisNode(
            id=identity,
            npub=npub,
            type=node_type,
            color=style.color,
            size=style.size,
            name=name,
            picture=picture,
        ))

    node_ids = set(identities)
    links: List[VisLink] = []
    for identity, member in snapshot.members.items():
        for target in sorted(member.follows):
            if target in node_ids:
                links.append(VisLink(source=identity, target=target))

    return VisGraph(
        nodes=nodes,
        links=links,
        generated_at=now_ms,
        last_updated=snapshot.last_updated,
    )
