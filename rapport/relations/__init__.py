from .errors import (
    AlreadyMemberError,
    AlreadyRelatedError,
    DataInvariantViolation,
    GroupRollbackError,
    InvalidRelationError,
    NotFoundError,
    NotMemberError,
    RelationError,
    StorageError,
    ValidationError,
)
from .keys import canonical_pair, perspective
from .store import RelationStore
from .friends import FriendEngine, classify_friends
from .groups import GroupEngine
from .coordinator import RefreshCoordinator, run_polling

__all__ = [
    "AlreadyMemberError",
    "AlreadyRelatedError",
    "DataInvariantViolation",
    "GroupRollbackError",
    "InvalidRelationError",
    "NotFoundError",
    "NotMemberError",
    "RelationError",
    "StorageError",
    "ValidationError",
    "canonical_pair",
    "perspective",
    "RelationStore",
    "FriendEngine",
    "classify_friends",
    "GroupEngine",
    "RefreshCoordinator",
    "run_polling",
]
