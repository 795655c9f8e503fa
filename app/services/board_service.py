"""Board service — boards, their trash lifecycle, and permanent removal.

A board is created with three default lists (Todo / In Progress / Done)
unless the caller supplies its own list set. Trashing sets `archived_at`;
a trashed board can be restored for TRASH_RETENTION_DAYS, after which the
retention sweep removes it for good.

Functions flush but do NOT commit — the caller commits.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func

from app.errors import Conflict, NotFound, StateError, ValidationError
from app.models.board import Board, BoardList, Label
from app.models.card import Card
from app.models.workspace import Workspace
from app.services import access_control
from app.services.card_service import purge_cards
from app.services.validators import as_utc, choice, optional_text, require_text

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 15
DEFAULT_FREE_BOARD_LIMIT = 3


def _validate_key_slug(key_slug):
    key_slug = optional_text(key_slug, "Key slug", max_length=16)
    if key_slug and not key_slug.replace("-", "").replace("_", "").isalnum():
        raise ValidationError("Key slug may only contain letters, digits, '-' and '_'.")
    return key_slug


def _validate_lists(lists):
    if lists is None:
        return [dict(item) for item in Board.DEFAULT_LISTS]
    if not isinstance(lists, list) or not lists:
        raise ValidationError("A board needs at least one list.")

    cleaned = []
    seen = set()
    for item in lists:
        if not isinstance(item, dict):
            raise ValidationError("Each list must be an object with a name.")
        name = require_text(item.get("name"), "List name", max_length=100)
        if name.lower() in seen:
            raise ValidationError(f"Duplicate list name '{name}'.")
        seen.add(name.lower())
        cleaned.append({"name": name, "is_done": bool(item.get("is_done", False))})
    return cleaned


def effective_plan(workspace, now=None):
    """PREMIUM only counts while plan_expires_at is unset or in the future."""
    if workspace.plan != "PREMIUM":
        return "FREE"
    expires = as_utc(workspace.plan_expires_at)
    if expires is not None and expires <= (now or datetime.now(timezone.utc)):
        return "FREE"
    return "PREMIUM"


def _ensure_unique_name(session, workspace_id, name, exclude_id=None):
    query = session.query(Board).filter(
        Board.workspace_id == workspace_id,
        func.lower(Board.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Board.id != exclude_id)
    if query.first() is not None:
        raise Conflict("A board with this name already exists in the workspace.")


def load_board(session, user_id, board_id, permission="board.view", include_trashed=False):
    """Fetch a board and authorize the caller against its workspace.

    Returns:
        (board, membership)

    Raises:
        NotFound: missing board, or a trashed one when not asked for.
    """
    board = session.get(Board, board_id)
    if board is None or (board.is_trashed and not include_trashed):
        raise NotFound("Board not found.")
    member = access_control.require(session, user_id, board.workspace_id, permission)
    return board, member


def create_board(session, user_id, workspace_id, name, key_slug=None,
                 mode="workspace", lists=None, board_limit=DEFAULT_FREE_BOARD_LIMIT):
    """Create a board with its initial lists.

    Raises:
        StateError: the workspace is on the FREE plan and at its board limit.
        Conflict: another board in the workspace has the same name.
    """
    name = require_text(name, "Board name", max_length=255)
    key_slug = _validate_key_slug(key_slug)
    mode = choice(mode or "workspace", "mode", Board.MODES)
    initial_lists = _validate_lists(lists)

    workspace = (
        session.query(Workspace)
        .filter(Workspace.id == workspace_id)
        .with_for_update()
        .one_or_none()
    )
    if workspace is None:
        raise NotFound("Workspace not found.")
    access_control.require(session, user_id, workspace_id, "board.create")

    if effective_plan(workspace) == "FREE":
        board_count = session.query(Board).filter_by(workspace_id=workspace_id).count()
        if board_count >= board_limit:
            raise StateError(
                f"Free plan is limited to {board_limit} boards. Please upgrade to create more."
            )

    _ensure_unique_name(session, workspace_id, name)

    board = Board(
        workspace_id=workspace_id,
        name=name,
        key_slug=key_slug,
        mode=mode,
        created_by_id=user_id,
    )
    session.add(board)
    session.flush()

    for idx, item in enumerate(initial_lists):
        session.add(
            BoardList(board_id=board.id, name=item["name"], order_idx=idx, is_done=item["is_done"])
        )
    session.flush()

    logger.info("Board %s created in workspace %s by %s", board.id, workspace_id, user_id)
    return board


def list_boards(session, user_id, workspace_id):
    """Active boards of a workspace, pinned first."""
    if session.get(Workspace, workspace_id) is None:
        raise NotFound("Workspace not found.")
    access_control.require(session, user_id, workspace_id, "board.view")
    return (
        session.query(Board)
        .filter(Board.workspace_id == workspace_id, Board.archived_at.is_(None))
        .order_by(Board.is_pinned.desc(), Board.created_at.desc())
        .all()
    )


def get_board(session, user_id, board_id):
    board, _ = load_board(session, user_id, board_id)
    return board


def update_board(session, user_id, board_id, data):
    """Rename a board or change its key slug / mode."""
    if not data:
        raise ValidationError("Nothing to update.")
    name = require_text(data["name"], "Board name", max_length=255) if "name" in data else None
    key_slug = _validate_key_slug(data.get("key_slug")) if "key_slug" in data else None
    if "mode" in data:
        choice(data["mode"], "mode", Board.MODES)

    board, _ = load_board(session, user_id, board_id, "board.update")

    if name is not None and name != board.name:
        _ensure_unique_name(session, board.workspace_id, name, exclude_id=board.id)
        board.name = name
    if "key_slug" in data:
        board.key_slug = key_slug
    if "mode" in data:
        board.mode = data["mode"]
    session.flush()
    return board


def toggle_pin(session, user_id, board_id):
    board, _ = load_board(session, user_id, board_id, "board.update")
    board.is_pinned = not board.is_pinned
    session.flush()
    return board


def trash_board(session, user_id, board_id, now=None):
    board, _ = load_board(session, user_id, board_id, "board.trash")
    board.archived_at = now or datetime.now(timezone.utc)
    session.flush()
    logger.info("Board %s moved to trash by %s", board_id, user_id)
    return board


def restore_board(session, user_id, board_id, retention_days=DEFAULT_RETENTION_DAYS, now=None):
    """Bring a trashed board back.

    Raises:
        StateError: the board is not trashed, or has been trashed longer
            than the retention window.
    """
    board, _ = load_board(session, user_id, board_id, "board.restore", include_trashed=True)
    if not board.is_trashed:
        raise StateError("Board is not in the trash.")

    now = now or datetime.now(timezone.utc)
    if now - as_utc(board.archived_at) > timedelta(days=retention_days):
        raise StateError(
            f"Board can only be restored within {retention_days} days of being trashed."
        )

    board.archived_at = None
    session.flush()
    return board


def delete_board_permanently(session, user_id, board_id):
    """Remove an active or trashed board and everything on it."""
    board, _ = load_board(session, user_id, board_id, "board.delete", include_trashed=True)
    name = board.name
    purge_boards(session, [board.id])
    logger.info("Board %s (%s) permanently deleted by %s", board_id, name, user_id)
    return name


def list_trashed_boards(session, user_id, workspace_id, retention_days=DEFAULT_RETENTION_DAYS,
                        now=None):
    """Trashed boards with the days left before the sweep removes them."""
    if session.get(Workspace, workspace_id) is None:
        raise NotFound("Workspace not found.")
    access_control.require(session, user_id, workspace_id, "board.view_trash")

    now = now or datetime.now(timezone.utc)
    boards = (
        session.query(Board)
        .filter(Board.workspace_id == workspace_id, Board.archived_at.isnot(None))
        .order_by(Board.archived_at.desc())
        .all()
    )
    result = []
    for board in boards:
        elapsed = now - as_utc(board.archived_at)
        days_left = max(0, retention_days - elapsed.days)
        result.append((board, days_left))
    return result


def purge_boards(session, board_ids):
    """Delete boards with their cards, lists and labels (bulk, child-first)."""
    if not board_ids:
        return 0

    card_ids = [
        row.id for row in session.query(Card.id).filter(Card.board_id.in_(board_ids))
    ]
    purge_cards(session, card_ids)

    session.query(Label).filter(Label.board_id.in_(board_ids)).delete()
    session.query(BoardList).filter(BoardList.board_id.in_(board_ids)).delete()
    deleted = (
        session.query(Board)
        .filter(Board.id.in_(board_ids))
        .delete()
    )
    session.flush()
    return deleted
