"""Storage adapter the relation engines talk to.

Each public method is one round trip: writes commit before returning, reads
never leave a transaction open on failure. Database errors surface as
:class:`StorageError`, duplicate keys as the matching ``Already*`` error and
missing rows as :class:`NotFoundError`.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Type

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from rapport.models import FriendRelation, Group, GroupMembership, User
from rapport.relations.errors import (
    AlreadyMemberError,
    AlreadyRelatedError,
    DataInvariantViolation,
    InvalidRelationError,
    NotFoundError,
    RelationError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class RelationStore:
    def __init__(self, session):
        self.session = session

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Failed to %s.", action)
            raise StorageError(f"Failed to {action}.") from exc

    def _commit(self, action: str, duplicate: Optional[Type[RelationError]] = None) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if duplicate is None:
                logger.exception("Failed to %s.", action)
                raise StorageError(f"Failed to {action}.") from exc
            raise duplicate() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Failed to %s.", action)
            raise StorageError(f"Failed to {action}.") from exc

    # Users

    def list_users(self, ids: Optional[Iterable[int]] = None) -> List[User]:
        with self._guard("load users"):
            query = self.session.query(User)
            if ids is not None:
                ids = list(ids)
                if not ids:
                    return []
                query = query.filter(User.id.in_(ids))
            return query.order_by(User.id.asc()).all()

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self._guard("load user"):
            return self.session.query(User).filter(User.email == (email or "").strip().lower()).first()

    # Friend relations

    def list_friend_relations(self, user_id: int) -> List[FriendRelation]:
        with self._guard("load friend relations"):
            return (
                self.session.query(FriendRelation)
                .filter(or_(FriendRelation.lo_user_id == user_id, FriendRelation.hi_user_id == user_id))
                .order_by(FriendRelation.created_at.asc(), FriendRelation.lo_user_id, FriendRelation.hi_user_id)
                .all()
            )

    def get_friend_relation(self, lo: int, hi: int) -> Optional[FriendRelation]:
        with self._guard("load friend relation"):
            return (
                self.session.query(FriendRelation)
                .filter_by(lo_user_id=lo, hi_user_id=hi)
                .first()
            )

    def add_friend_relation(
        self, lo: int, hi: int, accepted_by_lo: bool, accepted_by_hi: bool
    ) -> FriendRelation:
        if lo >= hi:
            raise InvalidRelationError(f"Relation key {lo}:{hi} is not canonical.")
        if not (accepted_by_lo or accepted_by_hi):
            raise DataInvariantViolation("A friend relation needs at least one accepting side.")
        if self.get_friend_relation(lo, hi) is not None:
            raise AlreadyRelatedError()
        relation = FriendRelation(
            lo_user_id=lo,
            hi_user_id=hi,
            accepted_by_lo=accepted_by_lo,
            accepted_by_hi=accepted_by_hi,
        )
        self.session.add(relation)
        self._commit("save friend relation", duplicate=AlreadyRelatedError)
        return relation

    def accept_friend_relation(self, lo: int, hi: int) -> None:
        with self._guard("update friend relation"):
            updated = (
                self.session.query(FriendRelation)
                .filter_by(lo_user_id=lo, hi_user_id=hi)
                .update({"accepted_by_lo": True, "accepted_by_hi": True})
            )
        if not updated:
            self.session.rollback()
            raise NotFoundError("No friend request found.")
        self._commit("update friend relation")

    def delete_friend_relation(self, lo: int, hi: int) -> None:
        with self._guard("delete friend relation"):
            deleted = (
                self.session.query(FriendRelation)
                .filter_by(lo_user_id=lo, hi_user_id=hi)
                .delete()
            )
        if not deleted:
            self.session.rollback()
            raise NotFoundError("No friend relation found.")
        self._commit("delete friend relation")

    # Groups and memberships

    def create_group_entity(self, name: str) -> Group:
        if not name:
            raise ValidationError("Group name cannot be empty.")
        group = Group(name=name)
        self.session.add(group)
        self._commit("create group")
        return group

    def delete_group_entity(self, group_id: int) -> None:
        with self._guard("load group"):
            group = self.session.get(Group, group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found.")
        self.session.delete(group)
        self._commit("delete group")

    def find_groups(self, ids: Iterable[int]) -> List[Group]:
        ids = list(ids)
        if not ids:
            return []
        with self._guard("load groups"):
            found = {group.id: group for group in self.session.query(Group).filter(Group.id.in_(ids))}
        return [found[group_id] for group_id in ids if group_id in found]

    def list_memberships(
        self, user_id: Optional[int] = None, group_id: Optional[int] = None
    ) -> List[GroupMembership]:
        if user_id is None and group_id is None:
            raise ValueError("user_id or group_id is required")
        with self._guard("load group memberships"):
            query = self.session.query(GroupMembership)
            if user_id is not None:
                query = query.filter(GroupMembership.user_id == user_id)
            if group_id is not None:
                query = query.filter(GroupMembership.group_id == group_id)
            return query.order_by(GroupMembership.created_at.asc(), GroupMembership.group_id).all()

    def get_membership(self, user_id: int, group_id: int) -> Optional[GroupMembership]:
        with self._guard("load group membership"):
            return (
                self.session.query(GroupMembership)
                .filter_by(user_id=user_id, group_id=group_id)
                .first()
            )

    def add_membership(self, user_id: int, group_id: int, accepted: bool) -> GroupMembership:
        if self.get_membership(user_id, group_id) is not None:
            raise AlreadyMemberError()
        membership = GroupMembership(user_id=user_id, group_id=group_id, accepted_invite=accepted)
        self.session.add(membership)
        self._commit("save group membership", duplicate=AlreadyMemberError)
        return membership

    def accept_membership(self, user_id: int, group_id: int) -> None:
        with self._guard("update group membership"):
            updated = (
                self.session.query(GroupMembership)
                .filter_by(user_id=user_id, group_id=group_id, accepted_invite=False)
                .update({"accepted_invite": True})
            )
        if not updated:
            self.session.rollback()
            raise NotFoundError("No pending invitation found.")
        self._commit("update group membership")

    def delete_membership(self, user_id: int, group_id: int) -> None:
        with self._guard("delete group membership"):
            deleted = (
                self.session.query(GroupMembership)
                .filter_by(user_id=user_id, group_id=group_id)
                .delete()
            )
        if not deleted:
            self.session.rollback()
            raise NotFoundError("You are not part of this group.")
        self._commit("delete group membership")
