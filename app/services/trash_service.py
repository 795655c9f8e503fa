"""Trash service — trashed-card listings and the retention sweep.

Trashed boards and cards stay restorable for TRASH_RETENTION_DAYS; the
sweep then deletes them permanently. The sweep runs from the CLI / the
scheduler and performs no role checks.

Functions flush but do NOT commit — the caller commits.
"""

import logging
from datetime import datetime, timedelta, timezone

from app.errors import NotFound
from app.models.board import Board
from app.models.card import Card
from app.models.workspace import Workspace
from app.services import access_control
from app.services.board_service import load_board, purge_boards
from app.services.card_service import purge_cards
from app.services.validators import as_utc

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 15


def _with_days_left(cards, retention_days, now):
    result = []
    for card in cards:
        elapsed = now - as_utc(card.archived_at)
        result.append((card, max(0, retention_days - elapsed.days)))
    return result


def list_trashed_cards(session, user_id, board_id, retention_days=DEFAULT_RETENTION_DAYS, now=None):
    """Trashed cards of one board, most recently trashed first.

    Returns:
        [(card, days_left), ...]
    """
    board, _ = load_board(session, user_id, board_id)
    cards = (
        session.query(Card)
        .filter(Card.board_id == board.id, Card.archived_at.isnot(None))
        .order_by(Card.archived_at.desc())
        .all()
    )
    return _with_days_left(cards, retention_days, now or datetime.now(timezone.utc))


def list_trashed_cards_in_workspace(session, user_id, workspace_id,
                                    retention_days=DEFAULT_RETENTION_DAYS, now=None):
    """Trashed cards on the workspace's active boards."""
    if session.get(Workspace, workspace_id) is None:
        raise NotFound("Workspace not found.")
    access_control.require(session, user_id, workspace_id, "board.view")

    cards = (
        session.query(Card)
        .join(Board, Board.id == Card.board_id)
        .filter(
            Board.workspace_id == workspace_id,
            Board.archived_at.is_(None),
            Card.archived_at.isnot(None),
        )
        .order_by(Card.archived_at.desc())
        .all()
    )
    return _with_days_left(cards, retention_days, now or datetime.now(timezone.utc))


def sweep_expired_trash(session, retention_days=DEFAULT_RETENTION_DAYS, now=None):
    """Permanently delete boards and cards trashed more than `retention_days` ago.

    Returns:
        {"boards": n, "cards": n}
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=retention_days)

    board_ids = [
        row.id
        for row in session.query(Board.id).filter(
            Board.archived_at.isnot(None), Board.archived_at < cutoff
        )
    ]
    card_ids = [
        row.id
        for row in session.query(Card.id).filter(
            Card.archived_at.isnot(None), Card.archived_at < cutoff
        )
    ]

    cards_deleted = purge_cards(session, card_ids)
    boards_deleted = purge_boards(session, board_ids)

    logger.info(
        "Trash sweep: %d board(s), %d card(s) older than %d days deleted",
        boards_deleted, cards_deleted, retention_days,
    )
    return {"boards": boards_deleted, "cards": cards_deleted}
