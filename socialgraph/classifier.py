"""
Node Classifier

Labels an identity by its follow edges relative to the core set.
"""

from typing import AbstractSet, Optional

from .types import MemberRecord, NodeType


def classify(
    identity: str,
    core_set: AbstractSet[str],
    member: Optional[MemberRecord]
) -> NodeType:
    """
    Classify one identity.

    - core:      identity is in the core set
    - mutual:    follows a core identity and is followed by one
    - follower:  follows a core identity only
    - following: is followed by a core identity only
    - unrelated: no follow edge to or from the core set
    """
    if identity in core_set:
        return NodeType.CORE

    if member is None:
        return NodeType.UNRELATED

    follows_core = not member.follows.isdisjoint(core_set)
    followed_by_core = not member.followers.isdisjoint(core_set)

    if follows_core and followed_by_core:
        return NodeType.MUTUAL
    if follows_core:
        return NodeType.FOLLOWER
    if followed_by_core:
        return NodeType.FOLLOWING
    return NodeType.UNRELATED
