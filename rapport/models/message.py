from datetime import datetime

from markupsafe import Markup
from sqlalchemy.orm import validates

from rapport import db
from rapport.utils.datetime import format_send_date, to_utc_iso


class _MessageMixin:
    id = db.Column(db.Integer, primary_key=True)
    body = db.Column(db.Text, nullable=False)
    sent_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    @validates("body")
    def _coerce_body(self, _, value):
        if isinstance(value, Markup):
            return str(value)
        return value

    def _base_dict(self):
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "body": self.body,
            "sent_at": to_utc_iso(self.sent_at),
            "sent_label": format_send_date(self.sent_at) if self.sent_at else None,
        }


class DirectMessage(_MessageMixin, db.Model):
    __tablename__ = "direct_messages"

    sender_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    sender = db.relationship("User", foreign_keys=[sender_id])

    __table_args__ = (db.Index("ix_direct_messages_pair", "sender_id", "receiver_id"),)

    def to_dict(self):
        payload = self._base_dict()
        payload["receiver_id"] = self.receiver_id
        return payload


class GroupMessage(_MessageMixin, db.Model):
    __tablename__ = "group_messages"

    sender_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    group_id = db.Column(
        db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )

    sender = db.relationship("User", foreign_keys=[sender_id])

    def to_dict(self):
        payload = self._base_dict()
        payload["group_id"] = self.group_id
        return payload
