"""Workspace invitation model.

An owner/admin invites an email address into a workspace with a role.
Only one `pending` invitation may exist per (workspace, email) pair; this
is enforced in invite_service, not by a constraint, so historical
accepted/rejected/expired rows can pile up freely.
"""

import uuid
from datetime import datetime, timezone

from app.extensions import db


class WorkspaceInvitation(db.Model):
    __tablename__ = "workspace_invitations"

    STATUSES = ["pending", "accepted", "rejected", "expired"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    workspace_id = db.Column(
        db.String(36),
        db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    email = db.Column(db.String(255), nullable=False)  # lowercased
    role = db.Column(db.String(20), default="member", nullable=False)
    invited_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    status = db.Column(
        db.String(20), default="pending", nullable=False
    )  # pending | accepted | rejected | expired
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.Index("ix_invitations_workspace_email", "workspace_id", "email"),
    )

    # --- Relationships ---
    workspace = db.relationship("Workspace", back_populates="invitations")
    invited_by = db.relationship("User", foreign_keys=[invited_by_id])

    @property
    def is_expired(self):
        """Check if the invitation has passed its expiry time."""
        now = datetime.now(timezone.utc)
        expires = self.expires_at
        # SQLite returns naive datetimes; Postgres returns aware ones.
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now > expires

    @property
    def is_pending(self):
        return self.status == "pending" and not self.is_expired

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "workspace_name": self.workspace.name if self.workspace else None,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "invited_by_id": self.invited_by_id,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WorkspaceInvitation {self.email} workspace={self.workspace_id} ({self.status})>"
