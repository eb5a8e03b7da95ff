from .user import User
from .friendship import FriendRelation
from .group import Group, GroupMembership
from .message import DirectMessage, GroupMessage

__all__ = [
    "User",
    "FriendRelation",
    "Group",
    "GroupMembership",
    "DirectMessage",
    "GroupMessage",
]
