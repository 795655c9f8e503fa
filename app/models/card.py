"""Card models.

- Card: a task on a board, positioned inside a list by `order_idx`.
  `key_seq` is a per-board running counter (never reused) that forms the
  human key, e.g. WEB-12.
- CardMember / CardLabel: many-to-many join rows.
- Comment: threaded comments on a card (`parent_id` self-reference).
"""

import uuid

from app.extensions import db


def make_card_key(key_slug, seq):
    """Human-readable card key: `<SLUG>-<seq>`, or `CARD-<seq>` without a slug."""
    if key_slug and key_slug.strip():
        return f"{key_slug.strip().upper()}-{seq}"
    return f"CARD-{seq}"


class Card(db.Model):
    __tablename__ = "cards"

    PRIORITIES = ["low", "medium", "high", "urgent"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    list_id = db.Column(
        db.String(36),
        db.ForeignKey("lists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    key_seq = db.Column(db.Integer, nullable=False)
    order_idx = db.Column(db.Integer, nullable=False, default=0)
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    priority = db.Column(
        db.String(20), default="medium", nullable=False
    )  # low | medium | high | urgent
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    archived_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    updated_by_id = db.Column(
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

    # --- Relationships ---
    board = db.relationship("Board")
    list = db.relationship("BoardList", back_populates="cards")
    members = db.relationship(
        "CardMember", back_populates="card", lazy="dynamic", passive_deletes=True
    )
    labels = db.relationship(
        "CardLabel", back_populates="card", lazy="dynamic", passive_deletes=True
    )

    @property
    def key(self):
        return make_card_key(self.board.key_slug if self.board else None, self.key_seq)

    @property
    def is_trashed(self):
        return self.archived_at is not None

    def to_dict(self, include_relations=False):
        d = {
            "id": self.id,
            "board_id": self.board_id,
            "list_id": self.list_id,
            "key_seq": self.key_seq,
            "key": self.key,
            "order_idx": self.order_idx,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "created_by_id": self.created_by_id,
            "updated_by_id": self.updated_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_relations:
            d["members"] = [m.user.to_dict() for m in self.members if m.user]
            d["labels"] = [cl.label.to_dict() for cl in self.labels if cl.label]
        return d

    def __repr__(self):
        return f"<Card {self.key_seq} {self.title[:40]}>"


class CardMember(db.Model):
    __tablename__ = "card_members"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.UniqueConstraint("card_id", "user_id", name="uq_card_member"),
    )

    card = db.relationship("Card", back_populates="members")
    user = db.relationship("User")

    def __repr__(self):
        return f"<CardMember card={self.card_id} user={self.user_id}>"


class CardLabel(db.Model):
    __tablename__ = "card_labels"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
    )
    label_id = db.Column(
        db.String(36),
        db.ForeignKey("labels.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        db.UniqueConstraint("card_id", "label_id", name="uq_card_label"),
    )

    card = db.relationship("Card", back_populates="labels")
    label = db.relationship("Label")

    def __repr__(self):
        return f"<CardLabel card={self.card_id} label={self.label_id}>"


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    parent_id = db.Column(
        db.String(36),
        db.ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
    )
    body = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    author = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "card_id": self.card_id,
            "author_id": self.author_id,
            "author": self.author.to_dict() if self.author else None,
            "parent_id": self.parent_id,
            "body": self.body,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Comment card={self.card_id} author={self.author_id}>"
