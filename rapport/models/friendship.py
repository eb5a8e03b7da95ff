from datetime import datetime

from rapport import db


class FriendRelation(db.Model):
    """One row per unordered pair of users.

    The pair is stored as ``(lo_user_id, hi_user_id)`` with ``lo < hi``. Each
    side carries its own acceptance flag; a request is a row where only the
    requester's flag is set, a friendship is a row where both are.
    """

    __tablename__ = "friend_relations"

    lo_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    hi_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    accepted_by_lo = db.Column(db.Boolean, nullable=False, default=False)
    accepted_by_hi = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    lo_user = db.relationship("User", foreign_keys=[lo_user_id])
    hi_user = db.relationship("User", foreign_keys=[hi_user_id])

    __table_args__ = (
        db.CheckConstraint("lo_user_id < hi_user_id", name="ck_friend_relation_lo_lt_hi"),
    )

    @property
    def is_accepted(self) -> bool:
        return bool(self.accepted_by_lo and self.accepted_by_hi)

    def involves(self, user_id: int) -> bool:
        return user_id in (self.lo_user_id, self.hi_user_id)

    def __repr__(self):
        return (
            f"<FriendRelation {self.lo_user_id}:{self.hi_user_id} "
            f"lo={self.accepted_by_lo} hi={self.accepted_by_hi}>"
        )
