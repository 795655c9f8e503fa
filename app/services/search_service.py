"""Search service — card, workspace and board lookup for the current user.

Card search is scoped to one board and filters by text, list, label,
assignee and due-date window. Workspace and board search match names
among the caller's own workspaces. Trashed boards and cards never match.

Read only; nothing here writes to the session.
"""

from sqlalchemy import or_, select

from app.errors import NotFound, ValidationError
from app.models.board import Board
from app.models.card import Card, CardLabel, CardMember
from app.models.workspace import Workspace, WorkspaceMember
from app.services import access_control
from app.services.validators import parse_datetime

CARD_LIMIT = 200
NAME_LIMIT = 50


def _clamp(limit, default, maximum):
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        return default
    return min(limit, maximum)


def _my_workspace_ids(user_id):
    return select(WorkspaceMember.workspace_id).where(WorkspaceMember.user_id == user_id)


def search_cards(session, user_id, board_id, q=None, list_id=None, label_id=None,
                 member_id=None, due_before=None, due_after=None, limit=100):
    """Active cards of a board matching every given filter, newest edit first.

    Args:
        q: Case-insensitive substring of the title or description.
        due_before / due_after: ISO 8601 bounds (inclusive); cards without
            a due date are excluded once either bound is set.
        limit: 1..200; anything else falls back to 100.

    Raises:
        ValidationError: board_id missing or a malformed date.
        NotFound: board missing or trashed.
        NotMember: caller is not in the board's workspace.
    """
    if not board_id:
        raise ValidationError("board_id is required.")
    before = parse_datetime(due_before, "due_before")
    after = parse_datetime(due_after, "due_after")
    limit = _clamp(limit, 100, CARD_LIMIT)

    board = session.get(Board, board_id)
    if board is None or board.is_trashed:
        raise NotFound("Board not found.")
    access_control.require(session, user_id, board.workspace_id, "board.view")

    query = session.query(Card).filter(Card.board_id == board.id, Card.archived_at.is_(None))
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Card.title.ilike(pattern), Card.description.ilike(pattern)))
    if list_id:
        query = query.filter(Card.list_id == list_id)
    if label_id:
        query = query.filter(
            Card.id.in_(select(CardLabel.card_id).where(CardLabel.label_id == label_id))
        )
    if member_id:
        query = query.filter(
            Card.id.in_(select(CardMember.card_id).where(CardMember.user_id == member_id))
        )
    if after is not None:
        query = query.filter(Card.due_date.isnot(None), Card.due_date >= after)
    if before is not None:
        query = query.filter(Card.due_date.isnot(None), Card.due_date <= before)

    return query.order_by(Card.updated_at.desc(), Card.created_at.desc()).limit(limit).all()


def search_workspaces(session, user_id, q, limit=10):
    """Workspaces I belong to whose name contains `q`. Blank `q` matches nothing."""
    if not q or not q.strip():
        return []
    return (
        session.query(Workspace)
        .filter(
            Workspace.id.in_(_my_workspace_ids(user_id)),
            Workspace.name.ilike(f"%{q.strip()}%"),
        )
        .order_by(Workspace.name)
        .limit(_clamp(limit, 10, NAME_LIMIT))
        .all()
    )


def search_boards(session, user_id, q, limit=10):
    """Active boards in my workspaces whose name contains `q`."""
    if not q or not q.strip():
        return []
    return (
        session.query(Board)
        .filter(
            Board.workspace_id.in_(_my_workspace_ids(user_id)),
            Board.archived_at.is_(None),
            Board.name.ilike(f"%{q.strip()}%"),
        )
        .order_by(Board.name)
        .limit(_clamp(limit, 10, NAME_LIMIT))
        .all()
    )
