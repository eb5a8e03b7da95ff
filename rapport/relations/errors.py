"""Error kinds raised by the relation engines and the store adapter.

Every error carries a stable ``code`` so the socket layer can hand it to the
client next to the human readable message.
"""
from __future__ import annotations

from typing import Optional


class RelationError(Exception):
    code = "relation_error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class InvalidRelationError(RelationError):
    """A user cannot be related to themselves."""

    code = "invalid_relation"


class AlreadyRelatedError(RelationError):
    """A relation between these users already exists."""

    code = "already_related"


class AlreadyMemberError(RelationError):
    """The user is already a member of or invited to this group."""

    code = "already_member"


class NotFoundError(RelationError):
    """The requested record does not exist."""

    code = "not_found"


class NotMemberError(RelationError):
    """Only group members can do this."""

    code = "not_member"


class ValidationError(RelationError):
    """The submitted value is not valid."""

    code = "validation_error"


class DataInvariantViolation(RelationError):
    """A stored record breaks a data invariant."""

    code = "data_invariant_violation"


class StorageError(RelationError):
    """The storage backend failed."""

    code = "storage_error"


class GroupRollbackError(StorageError):
    """A group was created but could not be cleaned up after a failure."""

    code = "group_rollback_failed"

    def __init__(self, group_id: int, message: Optional[str] = None):
        self.group_id = group_id
        super().__init__(
            message
            or f"Group {group_id} was left without members. Please delete it and try again."
        )
