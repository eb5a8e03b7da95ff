"""Direct and group messages, gated by the relation records."""
from __future__ import annotations

import logging
from typing import List

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError

from rapport import db
from rapport.models import DirectMessage, GroupMessage
from rapport.relations.errors import NotMemberError, StorageError, ValidationError
from rapport.relations.keys import canonical_pair

logger = logging.getLogger(__name__)


def are_friends(store, user_id: int, other_id: int) -> bool:
    lo, hi = canonical_pair(user_id, other_id)
    relation = store.get_friend_relation(lo, hi)
    return bool(relation and relation.is_accepted)


def is_group_member(store, user_id: int, group_id: int) -> bool:
    membership = store.get_membership(user_id, group_id)
    return bool(membership and membership.accepted_invite)


def _clean_body(body) -> str:
    text = (body or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty.")
    return text


def _save(message):
    db.session.add(message)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to save message.")
        raise StorageError("Failed to send message.") from exc
    return message


def send_direct_message(store, sender_id: int, receiver_id: int, body) -> DirectMessage:
    text = _clean_body(body)
    if not are_friends(store, sender_id, receiver_id):
        raise NotMemberError("You must be friends before you can chat.")
    return _save(DirectMessage(sender_id=sender_id, receiver_id=receiver_id, body=text))


def send_group_message(store, sender_id: int, group_id: int, body) -> GroupMessage:
    text = _clean_body(body)
    if not is_group_member(store, sender_id, group_id):
        raise NotMemberError("Only group members can post here.")
    return _save(GroupMessage(sender_id=sender_id, group_id=group_id, body=text))


def direct_history(store, user_id: int, other_id: int) -> List[DirectMessage]:
    if not are_friends(store, user_id, other_id):
        raise NotMemberError("You must be friends before you can chat.")
    return (
        DirectMessage.query.filter(
            or_(
                and_(DirectMessage.sender_id == user_id, DirectMessage.receiver_id == other_id),
                and_(DirectMessage.sender_id == other_id, DirectMessage.receiver_id == user_id),
            )
        )
        .order_by(DirectMessage.sent_at.asc(), DirectMessage.id.asc())
        .all()
    )


def group_history(store, user_id: int, group_id: int) -> List[GroupMessage]:
    if not is_group_member(store, user_id, group_id):
        raise NotMemberError("Only group members can read this group.")
    return (
        GroupMessage.query.filter_by(group_id=group_id)
        .order_by(GroupMessage.sent_at.asc(), GroupMessage.id.asc())
        .all()
    )
