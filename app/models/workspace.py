"""Workspace models.

- Workspace: the top-level tenant container. Owns boards, members, invitations.
- WorkspaceMember: join table linking users to workspaces with a role.
"""

import uuid

from app.extensions import db


class Workspace(db.Model):
    __tablename__ = "workspaces"

    VISIBILITIES = ["private", "public"]
    PLANS = ["FREE", "PREMIUM"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    visibility = db.Column(
        db.String(20), default="private", nullable=False
    )  # private | public
    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    plan = db.Column(db.String(20), default="FREE", nullable=False)
    plan_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    owner = db.relationship("User", foreign_keys=[owner_id])
    members = db.relationship(
        "WorkspaceMember", back_populates="workspace", lazy="dynamic",
        passive_deletes=True,
    )
    boards = db.relationship(
        "Board", back_populates="workspace", lazy="dynamic", passive_deletes=True
    )
    invitations = db.relationship(
        "WorkspaceInvitation", back_populates="workspace", lazy="dynamic",
        passive_deletes=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "visibility": self.visibility,
            "owner_id": self.owner_id,
            "plan": self.plan,
            "plan_expires_at": (
                self.plan_expires_at.isoformat() if self.plan_expires_at else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Workspace {self.name}>"


class WorkspaceMember(db.Model):
    __tablename__ = "workspace_members"

    ROLES = ["owner", "admin", "member", "guest"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    workspace_id = db.Column(
        db.String(36),
        db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    role = db.Column(
        db.String(20), default="member", nullable=False
    )  # owner | admin | member | guest
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "workspace_id", name="uq_user_workspace"
        ),
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="workspace_memberships")
    workspace = db.relationship("Workspace", back_populates="members")

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "user_id": self.user_id,
            "role": self.role,
            "user": self.user.to_dict() if self.user else None,
        }

    def __repr__(self):
        return f"<WorkspaceMember user={self.user_id} workspace={self.workspace_id} role={self.role}>"
