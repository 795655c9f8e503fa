"""Board models.

- Board: a kanban board inside a workspace. `archived_at` marks it trashed.
- BoardList: an ordered column on a board (`order_idx`, zero-based).
- Label: a board-scoped tag that can be attached to cards.

`order_idx` is an ordering hint, not a unique key: reads sort by
(order_idx, created_at) so duplicate indices only affect tie-breaking.
"""

import uuid

from app.extensions import db


class Board(db.Model):
    __tablename__ = "boards"

    MODES = ["private", "workspace", "public"]

    DEFAULT_LISTS = [
        {"name": "Todo", "is_done": False},
        {"name": "In Progress", "is_done": False},
        {"name": "Done", "is_done": True},
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    workspace_id = db.Column(
        db.String(36),
        db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = db.Column(db.String(255), nullable=False)
    key_slug = db.Column(db.String(16), nullable=True)  # e.g. "WEB" -> WEB-12
    mode = db.Column(
        db.String(20), default="workspace", nullable=False
    )  # private | workspace | public
    is_pinned = db.Column(db.Boolean, default=False, nullable=False)
    last_key_seq = db.Column(db.Integer, default=0, nullable=False)  # highest card key issued
    archived_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __table_args__ = (
        db.UniqueConstraint("workspace_id", "name", name="uq_board_workspace_name"),
    )

    # --- Relationships ---
    workspace = db.relationship("Workspace", back_populates="boards")
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    lists = db.relationship(
        "BoardList",
        back_populates="board",
        lazy="dynamic",
        passive_deletes=True,
        order_by="BoardList.order_idx",
    )
    labels = db.relationship(
        "Label", back_populates="board", lazy="dynamic", passive_deletes=True
    )

    @property
    def is_trashed(self):
        return self.archived_at is not None

    def to_dict(self, include_lists=False):
        d = {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "key_slug": self.key_slug,
            "mode": self.mode,
            "is_pinned": self.is_pinned,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_lists:
            d["lists"] = [lst.to_dict() for lst in self.lists]
        return d

    def __repr__(self):
        return f"<Board {self.name}>"


class BoardList(db.Model):
    __tablename__ = "lists"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(100), nullable=False)
    order_idx = db.Column(db.Integer, nullable=False, default=0)
    is_done = db.Column(db.Boolean, default=False, nullable=False)  # terminal column
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    board = db.relationship("Board", back_populates="lists")
    cards = db.relationship(
        "Card",
        back_populates="list",
        lazy="dynamic",
        passive_deletes=True,
        order_by="Card.order_idx",
    )

    def to_dict(self, card_count=None):
        d = {
            "id": self.id,
            "board_id": self.board_id,
            "name": self.name,
            "order_idx": self.order_idx,
            "is_done": self.is_done,
        }
        if card_count is not None:
            d["card_count"] = card_count
        return d

    def __repr__(self):
        return f"<BoardList {self.name} #{self.order_idx}>"


class Label(db.Model):
    __tablename__ = "labels"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = db.Column(db.String(100), nullable=False)
    color_hex = db.Column(db.String(7), nullable=True)  # "#3b82f6"
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    board = db.relationship("Board", back_populates="labels")

    def to_dict(self):
        return {
            "id": self.id,
            "board_id": self.board_id,
            "name": self.name,
            "color_hex": self.color_hex,
        }

    def __repr__(self):
        return f"<Label {self.name}>"
