from datetime import datetime

from rapport import db
from rapport.utils.datetime import to_utc_iso


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    memberships = db.relationship(
        "GroupMembership", backref="group", cascade="all, delete"
    )
    messages = db.relationship(
        "GroupMessage", backref="group", cascade="all, delete"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_iso(self.created_at),
        }

    def __repr__(self):
        return f"<Group {self.id} {self.name!r}>"


class GroupMembership(db.Model):
    __tablename__ = "group_memberships"

    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    group_id = db.Column(
        db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    accepted_invite = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship("User", backref="group_memberships")

    def __repr__(self):
        return f"<GroupMembership user={self.user_id} group={self.group_id} accepted={self.accepted_invite}>"
