"""Card service — cards, their position, trash lifecycle and assignees.

`key_seq` is the board's running card counter, read and bumped under a
lock on the board row. Board.last_key_seq remembers the highest number
ever issued, so permanently deleting the newest card does not free its
key. Positions inside a list go through OrderedCollection.

Functions flush but do NOT commit — the caller commits.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, or_, select

from app.errors import Conflict, InsufficientRole, NotFound, StateError, ValidationError
from app.models.board import Board, BoardList, Label
from app.models.card import Card, CardLabel, CardMember, Comment
from app.models.notification import Notification
from app.models.workspace import WorkspaceMember
from app.services import access_control
from app.services.ordered_collection import cards_in_list
from app.services.validators import (
    as_utc,
    choice,
    id_list,
    non_negative_int,
    optional_text,
    parse_datetime,
    require_id,
    require_text,
)

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 15


def load_card(session, user_id, card_id, permission="board.view", include_trashed=False):
    """Fetch a card on a live board and authorize the caller.

    Returns:
        (card, membership)
    """
    card = session.get(Card, card_id)
    if card is None or (card.is_trashed and not include_trashed):
        raise NotFound("Card not found.")
    board = card.board
    if board is None or board.is_trashed:
        raise NotFound("Card not found.")
    member = access_control.require(session, user_id, board.workspace_id, permission)
    return card, member


def _check_dates(start_date, due_date):
    if start_date and due_date and due_date < start_date:
        raise ValidationError("Due date cannot be before the start date.")


def _can_remove(card, member):
    return card.created_by_id == member.user_id or access_control.has_permission(
        member, "card.delete_any"
    )


def create_card(session, user_id, board_id, list_id, title, description=None,
                priority="medium", due_date=None, start_date=None,
                assignee_ids=None, label_ids=None):
    """Create a card at the end of a list.

    The board row is locked before key_seq and order_idx are read, so two
    concurrent creates on one board get distinct keys and positions.

    Returns:
        The created Card.
    """
    title = require_text(title, "Title", max_length=500)
    description = optional_text(description, "Description")
    priority = choice(priority or "medium", "priority", Card.PRIORITIES)
    due = parse_datetime(due_date, "Due date")
    start = parse_datetime(start_date, "Start date")
    _check_dates(start, due)
    list_id = require_id(list_id, "list_id")
    assignee_ids = id_list(assignee_ids, "assignee_ids")
    label_ids = id_list(label_ids, "label_ids")

    board = (
        session.query(Board)
        .filter(Board.id == board_id)
        .with_for_update()
        .one_or_none()
    )
    if board is None or board.is_trashed:
        raise NotFound("Board not found.")
    access_control.require(session, user_id, board.workspace_id, "card.create")

    board_list = session.get(BoardList, list_id)
    if board_list is None or board_list.board_id != board.id:
        raise NotFound("List not found on this board.")

    if assignee_ids:
        member_count = (
            session.query(WorkspaceMember)
            .filter(
                WorkspaceMember.workspace_id == board.workspace_id,
                WorkspaceMember.user_id.in_(assignee_ids),
            )
            .count()
        )
        if member_count != len(assignee_ids):
            raise ValidationError("Every assignee must be a member of the workspace.")
    if label_ids:
        label_count = (
            session.query(Label)
            .filter(Label.board_id == board.id, Label.id.in_(label_ids))
            .count()
        )
        if label_count != len(label_ids):
            raise ValidationError("Every label must belong to this board.")

    max_seq = (
        session.query(func.max(Card.key_seq)).filter(Card.board_id == board.id).scalar()
    )
    key_seq = max(max_seq or 0, board.last_key_seq or 0) + 1
    board.last_key_seq = key_seq
    order_idx = cards_in_list(session).append(list_id)

    card = Card(
        board_id=board.id,
        list_id=list_id,
        key_seq=key_seq,
        order_idx=order_idx,
        title=title,
        description=description,
        priority=priority,
        due_date=due,
        start_date=start,
        created_by_id=user_id,
        updated_by_id=user_id,
    )
    session.add(card)
    session.flush()

    for assignee_id in assignee_ids:
        session.add(CardMember(card_id=card.id, user_id=assignee_id))
    for label_id in label_ids:
        session.add(CardLabel(card_id=card.id, label_id=label_id))
    session.flush()

    logger.info("Card %s (%s) created on board %s", card.id, card.key, board.id)
    return card


def get_card(session, user_id, card_id):
    card, _ = load_card(session, user_id, card_id)
    return card


def list_cards(session, user_id, list_id, page=1, limit=50, q=None,
               label_id=None, member_id=None):
    """Active cards of a list in position order.

    Returns:
        (cards, total)
    """
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive.")

    board_list = session.get(BoardList, list_id)
    if board_list is None or board_list.board.is_trashed:
        raise NotFound("List not found.")
    access_control.require(session, user_id, board_list.board.workspace_id, "board.view")

    query = session.query(Card).filter(Card.list_id == list_id, Card.archived_at.is_(None))
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Card.title.ilike(pattern), Card.description.ilike(pattern)))
    if label_id:
        query = query.filter(
            Card.id.in_(
                select(CardLabel.card_id).where(CardLabel.label_id == label_id)
            )
        )
    if member_id:
        query = query.filter(
            Card.id.in_(
                select(CardMember.card_id).where(CardMember.user_id == member_id)
            )
        )

    total = query.count()
    cards = (
        query.order_by(Card.order_idx, Card.created_at)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return cards, total


def update_card(session, user_id, card_id, data):
    if not data:
        raise ValidationError("Nothing to update.")
    changes = {}
    if "title" in data:
        changes["title"] = require_text(data["title"], "Title", max_length=500)
    if "description" in data:
        changes["description"] = optional_text(data["description"], "Description")
    if "priority" in data:
        changes["priority"] = choice(data["priority"], "priority", Card.PRIORITIES)
    if "due_date" in data:
        changes["due_date"] = parse_datetime(data["due_date"], "Due date")
    if "start_date" in data:
        changes["start_date"] = parse_datetime(data["start_date"], "Start date")
    if not changes:
        raise ValidationError("Nothing to update.")

    card, _ = load_card(session, user_id, card_id, "card.update")
    start = changes.get("start_date", as_utc(card.start_date))
    due = changes.get("due_date", as_utc(card.due_date))
    _check_dates(start, due)

    for field, value in changes.items():
        setattr(card, field, value)
    card.updated_by_id = user_id
    session.flush()
    return card


def move_card(session, user_id, card_id, to_list_id, to_index):
    """Move a card to `to_index` of a list on the same board."""
    non_negative_int(to_index, "Target index")
    require_id(to_list_id, "to_list_id")

    card, _ = load_card(session, user_id, card_id, "card.update")
    cards_in_list(session).move(card.id, to_list_id, to_index)
    card.updated_by_id = user_id
    session.flush()
    return card


def trash_card(session, user_id, card_id, now=None):
    card, member = load_card(session, user_id, card_id)
    if not _can_remove(card, member):
        raise InsufficientRole("Only the card's creator or a workspace admin can trash it.")
    card.archived_at = now or datetime.now(timezone.utc)
    card.updated_by_id = user_id
    session.flush()
    return card


def restore_card(session, user_id, card_id, retention_days=DEFAULT_RETENTION_DAYS, now=None):
    card, _ = load_card(session, user_id, card_id, "card.restore", include_trashed=True)
    if not card.is_trashed:
        raise StateError("Card is not in the trash.")

    now = now or datetime.now(timezone.utc)
    if now - as_utc(card.archived_at) > timedelta(days=retention_days):
        raise StateError(
            f"Card can only be restored within {retention_days} days of being trashed."
        )
    card.archived_at = None
    card.updated_by_id = user_id
    session.flush()
    return card


def delete_card_permanently(session, user_id, card_id):
    card, member = load_card(session, user_id, card_id, include_trashed=True)
    if not _can_remove(card, member):
        raise InsufficientRole("Only the card's creator or a workspace admin can delete it.")
    title = card.title
    purge_cards(session, [card.id])
    logger.info("Card %s permanently deleted by %s", card_id, user_id)
    return title


# ──────────────────────────────────────────────
# Assignees
# ──────────────────────────────────────────────

def assign_member(session, actor_id, card_id, target_user_id):
    """Assign a workspace member to a card.

    Raises:
        ValidationError: the target is not a member of the workspace.
        Conflict: the target is already assigned.
    """
    require_id(target_user_id, "user_id")

    card, _ = load_card(session, actor_id, card_id, "card.assign")
    workspace_id = card.board.workspace_id
    if access_control.get_membership(session, target_user_id, workspace_id) is None:
        raise ValidationError("User is not a member of this workspace.")

    existing = (
        session.query(CardMember).filter_by(card_id=card.id, user_id=target_user_id).first()
    )
    if existing is not None:
        raise Conflict("User is already assigned to this card.")

    assignment = CardMember(card_id=card.id, user_id=target_user_id)
    session.add(assignment)
    session.flush()
    return assignment


def unassign_member(session, actor_id, card_id, target_user_id):
    card, _ = load_card(session, actor_id, card_id, "card.assign")
    assignment = (
        session.query(CardMember).filter_by(card_id=card.id, user_id=target_user_id).first()
    )
    if assignment is None:
        raise NotFound("User is not assigned to this card.")
    session.delete(assignment)
    session.flush()


def purge_cards(session, card_ids):
    """Delete cards and their joins / comments (bulk, child-first)."""
    if not card_ids:
        return 0

    session.query(CardLabel).filter(CardLabel.card_id.in_(card_ids)).delete()
    session.query(CardMember).filter(CardMember.card_id.in_(card_ids)).delete()
    session.query(Comment).filter(Comment.card_id.in_(card_ids)).delete()
    session.query(Notification).filter(Notification.card_id.in_(card_ids)).update(
        {"card_id": None}
    )
    deleted = session.query(Card).filter(Card.id.in_(card_ids)).delete()
    session.flush()
    return deleted
