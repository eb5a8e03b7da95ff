"""Per-user refresh loop and event routing.

A coordinator owns the friend and group views of one viewing user. ``tick``
rebuilds both from storage and swaps them in together; ``dispatch`` routes a
user action to the engine that handles it.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union, get_args

from rapport.relations.errors import StorageError
from rapport.relations.friends import FriendEngine, classify_friends
from rapport.relations.groups import GroupEngine
from rapport.utils.datetime import to_utc_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class SendFriendRequest:
    user_id: int


@dataclass(frozen=True)
class AcceptFriendRequest:
    user_id: int


@dataclass(frozen=True)
class DeclineFriendRequest:
    user_id: int


@dataclass(frozen=True)
class RemoveFriend:
    user_id: int


@dataclass(frozen=True)
class RetractFriendRequest:
    user_id: int


@dataclass(frozen=True)
class CreateGroup:
    name: str


@dataclass(frozen=True)
class InviteToGroup:
    user_id: int
    group_id: int


@dataclass(frozen=True)
class AcceptGroupInvite:
    group_id: int


@dataclass(frozen=True)
class DeclineGroupInvite:
    group_id: int


@dataclass(frozen=True)
class LeaveGroup:
    group_id: int


Event = Union[
    Refresh,
    SendFriendRequest,
    AcceptFriendRequest,
    DeclineFriendRequest,
    RemoveFriend,
    RetractFriendRequest,
    CreateGroup,
    InviteToGroup,
    AcceptGroupInvite,
    DeclineGroupInvite,
    LeaveGroup,
]


class RefreshCoordinator:
    def __init__(self, store, viewer_id: int):
        self.store = store
        self.viewer_id = viewer_id
        self.friends = FriendEngine(store, viewer_id)
        self.groups = GroupEngine(store, viewer_id)
        self.last_refreshed_at: Optional[datetime] = None

    def tick(self) -> bool:
        """Rebuild every view from storage.

        Returns ``False`` and keeps the previous views when the directory or
        the friend relations cannot be fetched. Failing to fetch memberships
        only empties the group partitions for this tick.
        """
        try:
            users = self.store.list_users()
            relations = self.store.list_friend_relations(self.viewer_id)
        except StorageError:
            logger.warning("Refresh for user %s failed, keeping previous views", self.viewer_id)
            return False
        try:
            memberships = self.store.list_memberships(user_id=self.viewer_id)
        except StorageError:
            logger.warning("Could not load group memberships for user %s", self.viewer_id)
            memberships = []
        friend_views = classify_friends(self.viewer_id, users, relations)
        group_views = self.groups.build_views(memberships, friend_views.friends)
        self.friends.views = friend_views
        self.groups.views = group_views
        self.last_refreshed_at = datetime.utcnow()
        return True

    def dispatch(self, event: Event) -> Any:
        handler = _HANDLERS.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported event {event!r}")
        return handler(self, event)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "user_id": self.viewer_id,
            "friends": self.friends.views.to_dict(),
            "groups": self.groups.views.to_dict(),
            "refreshed_at": to_utc_iso(self.last_refreshed_at),
        }


_HANDLERS: Dict[type, Callable[[RefreshCoordinator, Any], Any]] = {
    Refresh: lambda c, e: c.tick(),
    SendFriendRequest: lambda c, e: c.friends.send_request(e.user_id),
    AcceptFriendRequest: lambda c, e: c.friends.accept_request(e.user_id),
    DeclineFriendRequest: lambda c, e: c.friends.decline_request(e.user_id),
    RemoveFriend: lambda c, e: c.friends.remove_friend(e.user_id),
    RetractFriendRequest: lambda c, e: c.friends.retract_request(e.user_id),
    CreateGroup: lambda c, e: c.groups.create_group(e.name),
    InviteToGroup: lambda c, e: c.groups.invite_user(e.user_id, e.group_id),
    AcceptGroupInvite: lambda c, e: c.groups.accept_invite(e.group_id),
    DeclineGroupInvite: lambda c, e: c.groups.decline_invite(e.group_id),
    LeaveGroup: lambda c, e: c.groups.leave_group(e.group_id),
}

_missing = set(get_args(Event)) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"No handler for events: {sorted(cls.__name__ for cls in _missing)}")


def run_polling(
    coordinator: RefreshCoordinator,
    interval: float,
    on_tick: Optional[Callable[[RefreshCoordinator, bool], None]] = None,
    max_ticks: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Tick every ``interval`` seconds until ``max_ticks`` is reached.

    Ticks never overlap: the wait starts once the previous tick returned.
    """
    count = 0
    while max_ticks is None or count < max_ticks:
        ok = coordinator.tick()
        count += 1
        if on_tick is not None:
            on_tick(coordinator, ok)
        if max_ticks is not None and count >= max_ticks:
            break
        sleep(interval)
    return count
