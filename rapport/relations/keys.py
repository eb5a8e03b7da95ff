from __future__ import annotations

from typing import NamedTuple, Tuple

from rapport.relations.errors import InvalidRelationError


class Perspective(NamedTuple):
    """A friend relation seen from one of its two participants."""

    counterpart_id: int
    mine: bool
    theirs: bool


def canonical_pair(a: int, b: int) -> Tuple[int, int]:
    """Order two user ids so a symmetric relation has exactly one key."""
    if a == b:
        raise InvalidRelationError(f"User {a} cannot be related to themselves.")
    return (a, b) if a < b else (b, a)


def side_flags(viewer_id: int, other_id: int) -> Tuple[bool, bool]:
    """Initial ``(accepted_by_lo, accepted_by_hi)`` for a request from ``viewer_id``."""
    lo, _ = canonical_pair(viewer_id, other_id)
    return (viewer_id == lo, viewer_id != lo)


def perspective(relation, viewer_id: int) -> Perspective:
    if relation.lo_user_id == viewer_id:
        return Perspective(relation.hi_user_id, bool(relation.accepted_by_lo), bool(relation.accepted_by_hi))
    if relation.hi_user_id == viewer_id:
        return Perspective(relation.lo_user_id, bool(relation.accepted_by_hi), bool(relation.accepted_by_lo))
    raise InvalidRelationError(
        f"User {viewer_id} is not part of relation {relation.lo_user_id}:{relation.hi_user_id}."
    )
