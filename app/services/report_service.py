"""Report service — workspace reports, activity timeline, personal dashboard.

Workspace reports and timelines are for owners and admins only. Every
count covers active cards on active boards; a card counts as completed
when its list is a done list, and as overdue when its due date has
passed while it sits in a list that is not done.

Read only; nothing here writes to the session.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from app.errors import ValidationError
from app.models.activity import ActivityLog
from app.models.board import Board, BoardList
from app.models.card import Card, CardMember
from app.models.user import User
from app.models.workspace import WorkspaceMember
from app.services import access_control
from app.services.activity_service import visible_activity_filter
from app.services.validators import parse_datetime
from app.services.workspace_service import get_workspace_or_404


def _rate(done, total):
    return round(done / total * 100, 2) if total else 0


def _card_query(session, board_ids):
    return (
        session.query(Card)
        .join(BoardList, BoardList.id == Card.list_id)
        .filter(Card.board_id.in_(board_ids), Card.archived_at.is_(None))
    )


def _users_by_id(session, user_ids):
    if not user_ids:
        return {}
    rows = session.query(User).filter(User.id.in_(list(user_ids)))
    return {u.id: u.to_dict() for u in rows}


def workspace_report(session, user_id, workspace_id, start_date=None, end_date=None, now=None):
    """Summary, breakdowns and recent activity for one workspace.

    `start_date` / `end_date` (ISO 8601, inclusive) narrow the cards by
    creation time and the activity and new-member lists by their own
    timestamps. Member and board totals are never narrowed.

    Raises:
        ValidationError: malformed or inverted date range.
        NotFound: workspace missing.
        NotMember / InsufficientRole: caller is not an owner or admin.
    """
    start = parse_datetime(start_date, "start_date")
    end = parse_datetime(end_date, "end_date")
    if start and end and end < start:
        raise ValidationError("end_date must not be before start_date.")
    now = now or datetime.now(timezone.utc)

    workspace = get_workspace_or_404(session, workspace_id)
    access_control.require(session, user_id, workspace.id, "report.view")

    board_ids = select(Board.id).where(
        Board.workspace_id == workspace.id, Board.archived_at.is_(None)
    )

    def in_period(column, query):
        if start is not None:
            query = query.filter(column >= start)
        if end is not None:
            query = query.filter(column <= end)
        return query

    cards = in_period(Card.created_at, _card_query(session, board_ids))

    total_cards = cards.count()
    completed_cards = cards.filter(BoardList.is_done.is_(True)).count()
    overdue_cards = cards.filter(
        BoardList.is_done.is_(False), Card.due_date.isnot(None), Card.due_date < now
    ).count()

    by_list = (
        cards.with_entities(Card.list_id, BoardList.board_id, BoardList.name, func.count(Card.id))
        .group_by(Card.list_id, BoardList.board_id, BoardList.name)
        .order_by(BoardList.board_id, BoardList.name)
        .all()
    )
    by_priority = (
        cards.with_entities(Card.priority, func.count(Card.id))
        .group_by(Card.priority)
        .all()
    )
    by_member = (
        cards.join(CardMember, CardMember.card_id == Card.id)
        .with_entities(CardMember.user_id, func.count(Card.id))
        .group_by(CardMember.user_id)
        .order_by(func.count(Card.id).desc())
        .all()
    )
    contributors = (
        cards.filter(Card.created_by_id.isnot(None))
        .with_entities(Card.created_by_id, func.count(Card.id))
        .group_by(Card.created_by_id)
        .order_by(func.count(Card.id).desc())
        .limit(10)
        .all()
    )
    users = _users_by_id(
        session, {uid for uid, _ in by_member} | {uid for uid, _ in contributors}
    )

    new_members = (
        in_period(
            WorkspaceMember.created_at,
            session.query(WorkspaceMember).filter(WorkspaceMember.workspace_id == workspace.id),
        )
        .order_by(WorkspaceMember.created_at.desc())
        .limit(10)
        .all()
    )
    recent = (
        in_period(
            ActivityLog.created_at,
            session.query(ActivityLog).filter(visible_activity_filter([workspace.id])),
        )
        .order_by(ActivityLog.created_at.desc())
        .limit(20)
        .all()
    )

    return {
        "workspace": {"id": workspace.id, "name": workspace.name},
        "period": {
            "start_date": start.isoformat() if start else None,
            "end_date": end.isoformat() if end else None,
        },
        "summary": {
            "total_members": (
                session.query(WorkspaceMember).filter_by(workspace_id=workspace.id).count()
            ),
            "total_boards": (
                session.query(Board)
                .filter(Board.workspace_id == workspace.id, Board.archived_at.is_(None))
                .count()
            ),
            "total_cards": total_cards,
            "completed_cards": completed_cards,
            "overdue_cards": overdue_cards,
            "completion_rate": _rate(completed_cards, total_cards),
        },
        "cards_by_list": [
            {"list_id": list_id, "board_id": board_id, "name": name, "count": count}
            for list_id, board_id, name, count in by_list
        ],
        "cards_by_priority": [
            {"priority": priority, "count": count} for priority, count in by_priority
        ],
        "cards_by_member": [
            {"user": users.get(uid), "assigned": count} for uid, count in by_member
        ],
        "top_contributors": [
            {"user": users.get(uid), "cards_created": count} for uid, count in contributors
        ],
        "active_members": [
            {
                "user": m.user.to_dict() if m.user else None,
                "role": m.role,
                "joined_at": m.created_at.isoformat() if m.created_at else None,
            }
            for m in new_members
        ],
        "recent_activities": [log.to_dict() for log in recent],
    }


def activity_timeline(session, user_id, workspace_id, days=30, now=None):
    """Up to 100 newest activity rows on a workspace over the last `days`."""
    if isinstance(days, bool) or not isinstance(days, int) or days < 1:
        raise ValidationError("days must be a positive integer.")
    now = now or datetime.now(timezone.utc)

    workspace = get_workspace_or_404(session, workspace_id)
    access_control.require(session, user_id, workspace.id, "report.view")

    return (
        session.query(ActivityLog)
        .filter(
            visible_activity_filter([workspace.id]),
            ActivityLog.created_at >= now - timedelta(days=days),
        )
        .order_by(ActivityLog.created_at.desc())
        .limit(100)
        .all()
    )


def user_dashboard(session, user_id, now=None):
    """Totals across every workspace I belong to, plus my recent actions."""
    now = now or datetime.now(timezone.utc)
    workspace_ids = select(WorkspaceMember.workspace_id).where(
        WorkspaceMember.user_id == user_id
    )
    board_ids = select(Board.id).where(
        Board.workspace_id.in_(workspace_ids), Board.archived_at.is_(None)
    )

    cards = _card_query(session, board_ids)
    total_cards = cards.count()
    completed_cards = cards.filter(BoardList.is_done.is_(True)).count()
    open_cards = cards.filter(BoardList.is_done.is_(False))

    recent = (
        session.query(ActivityLog)
        .filter(ActivityLog.user_id == user_id, ~ActivityLog.action.like("user.%"))
        .order_by(ActivityLog.created_at.desc())
        .limit(10)
        .all()
    )

    return {
        "summary": {
            "total_boards": (
                session.query(Board)
                .filter(Board.workspace_id.in_(workspace_ids), Board.archived_at.is_(None))
                .count()
            ),
            "total_cards": total_cards,
            "completed_cards": completed_cards,
            "overdue_cards": open_cards.filter(
                Card.due_date.isnot(None), Card.due_date < now
            ).count(),
            "in_progress_cards": open_cards.count(),
            "total_members": (
                session.query(WorkspaceMember)
                .filter(WorkspaceMember.workspace_id.in_(workspace_ids))
                .count()
            ),
            "completion_rate": _rate(completed_cards, total_cards),
        },
        "recent_activities": [log.to_dict() for log in recent],
    }
