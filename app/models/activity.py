"""Activity log model.

Append-only record of user actions (card created, board trashed, ...) for
the activity feed. Rows are only removed by the activity retention sweep.
"""

import uuid

from app.extensions import db


class ActivityLog(db.Model):
    __tablename__ = "activity_logs"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True, index=True
    )
    action = db.Column(db.String(255), nullable=False)  # e.g. "card.created"
    entity_type = db.Column(db.String(50), nullable=True)  # board | list | card ...
    entity_id = db.Column(db.String(36), nullable=True)
    entity_name = db.Column(db.String(500), nullable=True)
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # extra context, named metadata_ to avoid the declarative attribute clash
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now(), index=True
    )

    # --- Relationships ---
    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user": self.user.to_dict() if self.user else None,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "metadata": self.metadata_ or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ActivityLog {self.action}>"
