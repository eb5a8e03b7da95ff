"""Group membership state machine.

A membership row moves ``invited -> member`` and ends by deletion; the
creator's row starts as ``member``. Declining an invitation and leaving a
group are the same operation. A group whose last row is deleted is deleted
too.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from rapport.relations.errors import (
    GroupRollbackError,
    NotFoundError,
    NotMemberError,
    RelationError,
    StorageError,
    ValidationError,
)
from rapport.relations.views import Contact, GroupSummary, GroupViews

logger = logging.getLogger(__name__)


class GroupEngine:
    def __init__(self, store, viewer_id: int):
        self.store = store
        self.viewer_id = viewer_id
        self.views = GroupViews()

    def build_views(self, memberships: Iterable, friends: Optional[Iterable[Contact]] = None) -> GroupViews:
        accepted_ids: List[int] = []
        invited_ids: List[int] = []
        for membership in memberships:
            if membership.user_id != self.viewer_id:
                continue
            if membership.accepted_invite:
                accepted_ids.append(membership.group_id)
            else:
                invited_ids.append(membership.group_id)
        return GroupViews(
            member=self._resolve(accepted_ids),
            invited=self._resolve(invited_ids),
            invitable=list(friends or []),
        )

    def reconcile(self, memberships=None, friends=None) -> GroupViews:
        if memberships is None:
            memberships = self.store.list_memberships(user_id=self.viewer_id)
        self.views = self.build_views(memberships, friends)
        return self.views

    def _resolve(self, group_ids: List[int]) -> List[GroupSummary]:
        if not group_ids:
            return []
        try:
            groups = self.store.find_groups(group_ids)
        except StorageError:
            logger.warning("Could not load groups %s for user %s", group_ids, self.viewer_id)
            return []
        return [GroupSummary.from_group(group) for group in groups]

    def create_group(self, name: str) -> GroupSummary:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Group name cannot be empty.")
        group = self.store.create_group_entity(name)
        summary = GroupSummary.from_group(group)
        try:
            self.store.add_membership(self.viewer_id, summary.id, accepted=True)
        except RelationError:
            logger.error("Adding creator %s to group %s failed, deleting the group", self.viewer_id, summary.id)
            self._discard_group(summary.id)
            raise
        logger.info("User %s created group %s", self.viewer_id, summary.id)
        self.views.member.append(summary)
        return summary

    def _discard_group(self, group_id: int) -> None:
        try:
            self.store.delete_group_entity(group_id)
        except RelationError as exc:
            logger.error("Could not delete group %s after a failed creation", group_id)
            raise GroupRollbackError(group_id) from exc

    def invite_user(self, target_id: int, group_id: int):
        own = self.store.get_membership(self.viewer_id, group_id)
        if own is None or not own.accepted_invite:
            raise NotMemberError("Only group members can invite users.")
        if not self.store.list_users([target_id]):
            raise NotFoundError("User not found.")
        membership = self.store.add_membership(target_id, group_id, accepted=False)
        logger.info("User %s invited %s to group %s", self.viewer_id, target_id, group_id)
        return membership

    def accept_invite(self, group_id: int) -> None:
        self.store.accept_membership(self.viewer_id, group_id)
        logger.info("User %s joined group %s", self.viewer_id, group_id)
        pending = [group for group in self.views.invited if group.id == group_id]
        self.views.invited = [group for group in self.views.invited if group.id != group_id]
        self.views.member.extend(pending)

    def leave_group(self, group_id: int) -> bool:
        """Delete the viewer's row; returns ``True`` when the group went with it."""
        self.store.delete_membership(self.viewer_id, group_id)
        self.views.drop(group_id)
        logger.info("User %s left group %s", self.viewer_id, group_id)
        # Not atomic with the delete above: the group may briefly exist with no rows.
        if self.store.list_memberships(group_id=group_id):
            return False
        try:
            self.store.delete_group_entity(group_id)
        except NotFoundError:
            logger.debug("Group %s was already deleted", group_id)
            return True
        logger.info("Group %s had no members left and was deleted", group_id)
        return True

    def decline_invite(self, group_id: int) -> bool:
        return self.leave_group(group_id)
