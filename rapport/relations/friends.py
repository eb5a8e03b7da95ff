"""Friend request state machine and the per-user friend classification."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from rapport.relations.errors import AlreadyRelatedError, DataInvariantViolation, NotFoundError
from rapport.relations.keys import canonical_pair, perspective, side_flags
from rapport.relations.views import (
    FRIENDS,
    INCOMING,
    OUTGOING,
    UNRELATED,
    Contact,
    FriendViews,
)

logger = logging.getLogger(__name__)


def classify_friends(viewer_id: int, users: Iterable, relations: Iterable) -> FriendViews:
    """Partition the user directory as seen by ``viewer_id``.

    Every relation touching the viewer places its counterpart in one of
    friends, incoming or outgoing. Whatever is left of the directory is
    unrelated. The viewer never shows up in any partition. If a counterpart
    appears more than once the last relation wins. Relations with no
    accepting side are reported as violations and their counterpart is left
    out of the views until the record is repaired.
    """
    directory: Dict[int, Contact] = {
        user.id: Contact.from_user(user) for user in users if user.id != viewer_id
    }
    placements: Dict[int, Optional[str]] = {}
    views = FriendViews()

    for relation in relations:
        if not relation.involves(viewer_id):
            logger.warning(
                "Skipping relation %s:%s, it does not involve user %s",
                relation.lo_user_id,
                relation.hi_user_id,
                viewer_id,
            )
            continue
        side = perspective(relation, viewer_id)
        if side.mine and side.theirs:
            placements[side.counterpart_id] = FRIENDS
        elif side.mine:
            placements[side.counterpart_id] = OUTGOING
        elif side.theirs:
            placements[side.counterpart_id] = INCOMING
        else:
            violation = DataInvariantViolation(
                f"Relation {relation.lo_user_id}:{relation.hi_user_id} has no accepting side."
            )
            logger.warning("%s", violation)
            views.violations.append(violation)
            placements[side.counterpart_id] = None

    for counterpart_id, bucket in placements.items():
        contact = directory.pop(counterpart_id, None)
        if contact is None:
            logger.debug("User %s is not in the directory, leaving it out", counterpart_id)
            continue
        if bucket is not None:
            views.partition(bucket).append(contact)

    views.unrelated = list(directory.values())
    return views


class FriendEngine:
    def __init__(self, store, viewer_id: int):
        self.store = store
        self.viewer_id = viewer_id
        self.views = FriendViews()

    def reconcile(self, users=None, relations=None) -> FriendViews:
        if users is None:
            users = self.store.list_users()
        if relations is None:
            relations = self.store.list_friend_relations(self.viewer_id)
        self.views = classify_friends(self.viewer_id, users, relations)
        return self.views

    def send_request(self, target_id: int):
        lo, hi = canonical_pair(self.viewer_id, target_id)
        accepted_by_lo, accepted_by_hi = side_flags(self.viewer_id, target_id)
        if not self.store.list_users([target_id]):
            raise NotFoundError("User not found.")
        relation = self.store.add_friend_relation(lo, hi, accepted_by_lo, accepted_by_hi)
        logger.info("User %s sent a friend request to %s", self.viewer_id, target_id)
        self._move(target_id, OUTGOING)
        return relation

    def accept_request(self, other_id: int) -> None:
        lo, hi = canonical_pair(self.viewer_id, other_id)
        relation = self.store.get_friend_relation(lo, hi)
        if relation is None:
            raise NotFoundError("No friend request found.")
        side = perspective(relation, self.viewer_id)
        if side.mine and side.theirs:
            raise AlreadyRelatedError("You are already friends.")
        if not side.theirs:
            raise NotFoundError("No incoming friend request from this user.")
        self.store.accept_friend_relation(lo, hi)
        logger.info("User %s accepted the friend request of %s", self.viewer_id, other_id)
        self._move(other_id, FRIENDS)

    def decline_request(self, other_id: int) -> None:
        self._delete(other_id, "declined the friend request of")

    def remove_friend(self, other_id: int) -> None:
        self._delete(other_id, "removed friend")

    def retract_request(self, other_id: int) -> None:
        self._delete(other_id, "retracted the friend request to")

    def _delete(self, other_id: int, verb: str) -> None:
        lo, hi = canonical_pair(self.viewer_id, other_id)
        self.store.delete_friend_relation(lo, hi)
        logger.info("User %s %s %s", self.viewer_id, verb, other_id)
        self._move(other_id, UNRELATED)

    def _move(self, user_id: int, target: str) -> None:
        if not self.views.move(user_id, target):
            logger.debug("User %s not in local views of %s, next refresh will place it", user_id, self.viewer_id)
