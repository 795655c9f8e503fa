"""Label service — board-scoped labels and their card attachments.

Attaching is an idempotent upsert; detaching a label that is not on the
card is a no-op.

Functions flush but do NOT commit — the caller commits.
"""

import re

from app.errors import NotFound, ValidationError
from app.models.board import Label
from app.models.card import CardLabel
from app.services.board_service import load_board
from app.services.card_service import load_card
from app.services.validators import require_text

COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")
DEFAULT_COLOR = "#94a3b8"


def _validate_color(color):
    if color in (None, ""):
        return None
    if not COLOR_RE.match(color):
        raise ValidationError("color_hex must look like #RRGGBB.")
    return color.lower()


def create_label(session, user_id, board_id, name, color_hex=None):
    name = require_text(name, "Label name", max_length=100)
    color = _validate_color(color_hex) or DEFAULT_COLOR

    board, _ = load_board(session, user_id, board_id, "label.manage")
    label = Label(board_id=board.id, name=name, color_hex=color)
    session.add(label)
    session.flush()
    return label


def list_labels(session, user_id, board_id):
    board, _ = load_board(session, user_id, board_id)
    return session.query(Label).filter_by(board_id=board.id).order_by(Label.name).all()


def _load_label(session, user_id, label_id):
    label = session.get(Label, label_id)
    if label is None:
        raise NotFound("Label not found.")
    load_board(session, user_id, label.board_id, "label.manage")
    return label


def update_label(session, user_id, label_id, data):
    if not data or not any(k in data for k in ("name", "color_hex")):
        raise ValidationError("Provide name or color_hex.")
    name = require_text(data["name"], "Label name", max_length=100) if "name" in data else None
    color = _validate_color(data.get("color_hex")) if "color_hex" in data else None

    label = _load_label(session, user_id, label_id)
    if name is not None:
        label.name = name
    if "color_hex" in data:
        label.color_hex = color or DEFAULT_COLOR
    session.flush()
    return label


def delete_label(session, user_id, label_id):
    label = _load_label(session, user_id, label_id)
    session.query(CardLabel).filter_by(label_id=label.id).delete()
    session.delete(label)
    session.flush()


def add_label_to_card(session, user_id, card_id, label_id):
    """Attach a label from the card's own board. Returns the CardLabel row."""
    card, _ = load_card(session, user_id, card_id, "label.manage")
    label = session.get(Label, label_id)
    if label is None or label.board_id != card.board_id:
        raise NotFound("Label not found on this card's board.")

    existing = session.query(CardLabel).filter_by(card_id=card.id, label_id=label.id).first()
    if existing is not None:
        return existing

    card_label = CardLabel(card_id=card.id, label_id=label.id)
    session.add(card_label)
    session.flush()
    return card_label


def remove_label_from_card(session, user_id, card_id, label_id):
    card, _ = load_card(session, user_id, card_id, "label.manage")
    session.query(CardLabel).filter_by(card_id=card.id, label_id=label_id).delete()
    session.flush()
