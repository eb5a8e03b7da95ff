from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from rapport.relations.errors import DataInvariantViolation
from rapport.utils.datetime import to_utc_iso

FRIENDS = "friends"
INCOMING = "incoming"
OUTGOING = "outgoing"
UNRELATED = "unrelated"
FRIEND_PARTITIONS = (FRIENDS, INCOMING, OUTGOING, UNRELATED)


class Contact(NamedTuple):
    id: int
    first_name: str
    last_name: str

    @classmethod
    def from_user(cls, user) -> "Contact":
        return cls(user.id, user.first_name, user.last_name)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
        }


class GroupSummary(NamedTuple):
    id: int
    name: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_group(cls, group) -> "GroupSummary":
        return cls(group.id, group.name, group.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "created_at": to_utc_iso(self.created_at)}


@dataclass
class FriendViews:
    friends: List[Contact] = field(default_factory=list)
    incoming: List[Contact] = field(default_factory=list)
    outgoing: List[Contact] = field(default_factory=list)
    unrelated: List[Contact] = field(default_factory=list)
    violations: List[DataInvariantViolation] = field(default_factory=list)

    def partition(self, name: str) -> List[Contact]:
        if name not in FRIEND_PARTITIONS:
            raise KeyError(name)
        return getattr(self, name)

    def locate(self, user_id: int) -> Optional[Tuple[str, Contact]]:
        for name in FRIEND_PARTITIONS:
            for contact in self.partition(name):
                if contact.id == user_id:
                    return name, contact
        return None

    def ids(self, name: str) -> List[int]:
        return [contact.id for contact in self.partition(name)]

    def move(self, user_id: int, target: str) -> bool:
        """Move a contact into ``target``; ``False`` when the view does not know it."""
        found = self.locate(user_id)
        if found is None:
            return False
        source, contact = found
        bucket = self.partition(source)
        bucket[:] = [item for item in bucket if item.id != user_id]
        self.partition(target).append(contact)
        return True

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            name: [contact.to_dict() for contact in self.partition(name)] for name in FRIEND_PARTITIONS
        }
        payload["violations"] = [str(violation) for violation in self.violations]
        return payload


@dataclass
class GroupViews:
    member: List[GroupSummary] = field(default_factory=list)
    invited: List[GroupSummary] = field(default_factory=list)
    invitable: List[Contact] = field(default_factory=list)

    def drop(self, group_id: int) -> None:
        self.member = [group for group in self.member if group.id != group_id]
        self.invited = [group for group in self.invited if group.id != group_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "member": [group.to_dict() for group in self.member],
            "invited": [group.to_dict() for group in self.invited],
            "invitable": [contact.to_dict() for contact in self.invitable],
        }
