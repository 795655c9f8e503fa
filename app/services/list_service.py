"""List service — the ordered columns of a board.

Positions are managed by the lists_in_board OrderedCollection; list names
are unique per board, compared case-insensitively.

Functions flush but do NOT commit — the caller commits.
"""

from sqlalchemy import and_, func

from app.errors import Conflict, NotFound, ValidationError
from app.models.board import BoardList
from app.models.card import Card
from app.services import access_control
from app.services.board_service import load_board
from app.services.ordered_collection import lists_in_board
from app.services.validators import non_negative_int, require_id, require_text


def load_list(session, user_id, list_id, permission="board.view"):
    """Returns (board_list, membership) for a list on a live board."""
    board_list = session.get(BoardList, list_id)
    if board_list is None or board_list.board.is_trashed:
        raise NotFound("List not found.")
    member = access_control.require(
        session, user_id, board_list.board.workspace_id, permission
    )
    return board_list, member


def _ensure_unique_name(session, board_id, name, exclude_id=None):
    query = session.query(BoardList).filter(
        BoardList.board_id == board_id,
        func.lower(BoardList.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(BoardList.id != exclude_id)
    if query.first() is not None:
        raise Conflict("A list with this name already exists on the board.")


def create_list(session, user_id, board_id, name, is_done=False):
    name = require_text(name, "List name", max_length=100)

    board, _ = load_board(session, user_id, board_id, "list.manage")
    order_idx = lists_in_board(session).append(board.id)
    _ensure_unique_name(session, board.id, name)

    board_list = BoardList(
        board_id=board.id, name=name, order_idx=order_idx, is_done=bool(is_done)
    )
    session.add(board_list)
    session.flush()
    return board_list


def list_lists(session, user_id, board_id):
    """Lists of a board in order, each with its count of active cards.

    Returns:
        [(board_list, card_count), ...]
    """
    board, _ = load_board(session, user_id, board_id)
    card_count = func.count(Card.id)
    rows = (
        session.query(BoardList, card_count)
        .outerjoin(
            Card,
            and_(Card.list_id == BoardList.id, Card.archived_at.is_(None)),
        )
        .filter(BoardList.board_id == board.id)
        .group_by(BoardList.id)
        .order_by(BoardList.order_idx, BoardList.created_at)
        .all()
    )
    return rows


def update_list(session, user_id, list_id, data):
    """Rename a list, flip is_done, or move it to a new position."""
    if not data or not any(k in data for k in ("name", "is_done", "order_idx")):
        raise ValidationError("Provide at least one of name, is_done or order_idx.")
    name = require_text(data["name"], "List name", max_length=100) if "name" in data else None
    if "is_done" in data and not isinstance(data["is_done"], bool):
        raise ValidationError("is_done must be true or false.")
    if "order_idx" in data:
        non_negative_int(data["order_idx"], "order_idx")

    board_list, _ = load_list(session, user_id, list_id, "list.manage")

    if name is not None and name != board_list.name:
        _ensure_unique_name(session, board_list.board_id, name, exclude_id=board_list.id)
        board_list.name = name
    if "is_done" in data:
        board_list.is_done = data["is_done"]
    if "order_idx" in data:
        lists_in_board(session).move(board_list.id, board_list.board_id, data["order_idx"])
    session.flush()
    return board_list


def reorder_lists(session, user_id, board_id, orders):
    """Rewrite a board's list order from [{"id": ..., "order_idx": n}, ...]."""
    if not isinstance(orders, list) or not orders:
        raise ValidationError("orders must be a non-empty list.")
    pairs = []
    for entry in orders:
        if not isinstance(entry, dict):
            raise ValidationError("Each order entry needs an id and an order_idx.")
        pairs.append((
            require_id(entry.get("id"), "id"),
            non_negative_int(entry.get("order_idx"), "order_idx"),
        ))

    board, _ = load_board(session, user_id, board_id, "list.manage")
    return lists_in_board(session).reorder_all(board.id, pairs)


def delete_list(session, user_id, list_id, move_to_list_id=None):
    """Delete a list; its cards must be moved to another list of the board first.

    Returns:
        Number of cards moved.
    """
    board_list, _ = load_list(session, user_id, list_id, "list.manage")
    return lists_in_board(session).delete_and_compact(
        board_list.id, board_list.board_id, move_children_to=move_to_list_id
    )
