"""Notification models.

- Notification: an in-app message for one receiver. `emailed_at` stays
  null until the message has gone out in an email digest.
- NotificationSetting: per-user email preferences and digest cadence.
  Created lazily with defaults the first time it is needed.
"""

import uuid

from app.extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"

    TYPES = [
        "task_assigned",
        "workspace_invitation",
        "invitation_accepted",
        "invitation_rejected",
        "board_created",
        "board_trashed",
        "general",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    receiver_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    type = db.Column(db.String(50), default="general", nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=True)
    workspace_id = db.Column(
        db.String(36),
        db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=True,
    )
    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="SET NULL"),
        nullable=True,
    )
    invitation_id = db.Column(
        db.String(36),
        db.ForeignKey("workspace_invitations.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    emailed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    receiver = db.relationship("User", foreign_keys=[receiver_id])
    sender = db.relationship("User", foreign_keys=[sender_id])

    def to_dict(self):
        return {
            "id": self.id,
            "receiver_id": self.receiver_id,
            "sender": self.sender.to_dict() if self.sender else None,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "workspace_id": self.workspace_id,
            "card_id": self.card_id,
            "invitation_id": self.invitation_id,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.type} to={self.receiver_id}>"


class NotificationSetting(db.Model):
    __tablename__ = "notification_settings"

    FREQUENCIES = ["HOURLY", "DAILY", "WEEKLY", "NEVER"]

    # Minimum hours between two digests for each cadence.
    THRESHOLD_HOURS = {"HOURLY": 1, "DAILY": 24, "WEEKLY": 168}

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    email_notifications = db.Column(db.Boolean, default=True, nullable=False)
    task_assigned_email = db.Column(db.Boolean, default=True, nullable=False)
    workspace_invite_email = db.Column(db.Boolean, default=True, nullable=False)
    invitation_response_email = db.Column(db.Boolean, default=True, nullable=False)
    email_digest_enabled = db.Column(db.Boolean, default=True, nullable=False)
    email_digest_frequency = db.Column(
        db.String(10), default="DAILY", nullable=False
    )  # HOURLY | DAILY | WEEKLY | NEVER
    last_digest_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", back_populates="notification_setting")

    def to_dict(self):
        return {
            "email_notifications": self.email_notifications,
            "task_assigned_email": self.task_assigned_email,
            "workspace_invite_email": self.workspace_invite_email,
            "invitation_response_email": self.invitation_response_email,
            "email_digest_enabled": self.email_digest_enabled,
            "email_digest_frequency": self.email_digest_frequency,
            "last_digest_sent_at": (
                self.last_digest_sent_at.isoformat()
                if self.last_digest_sent_at
                else None
            ),
        }

    def __repr__(self):
        return f"<NotificationSetting user={self.user_id} {self.email_digest_frequency}>"
