"""Activity service — append-only activity log, feed queries, retention.

log_activity() is the fire-and-forget entry point blueprints hand to
run_in_background(); it opens no transaction of the caller's and never
raises. Everything else takes the session explicitly.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, func, or_, select

from app.errors import NotMember
from app.extensions import db
from app.models.activity import ActivityLog
from app.models.board import Board
from app.models.card import Card
from app.models.workspace import WorkspaceMember

logger = logging.getLogger(__name__)


def record_activity(session, user_id, action, entity_type=None, entity_id=None,
                    entity_name=None, metadata=None):
    """Add an ActivityLog row (flush only). Missing user/action is ignored."""
    if not user_id or not action:
        logger.warning(
            "Activity not logged: user_id=%r action=%r", user_id, action
        )
        return None

    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_name=entity_name,
        metadata_=metadata or {},
    )
    session.add(entry)
    session.flush()
    return entry


def log_activity(user_id, action, entity_type=None, entity_id=None,
                 entity_name=None, metadata=None):
    """Background task: record and commit one activity row."""
    entry = record_activity(
        db.session, user_id, action, entity_type, entity_id, entity_name, metadata
    )
    if entry is not None:
        db.session.commit()


def visible_activity_filter(workspace_ids):
    """Activity on the given workspaces and on their boards and cards."""
    board_ids = select(Board.id).where(Board.workspace_id.in_(workspace_ids))
    card_ids = select(Card.id).where(Card.board_id.in_(board_ids))
    return or_(
        and_(ActivityLog.entity_type == "workspace", ActivityLog.entity_id.in_(workspace_ids)),
        and_(ActivityLog.entity_type == "board", ActivityLog.entity_id.in_(board_ids)),
        and_(ActivityLog.entity_type == "card", ActivityLog.entity_id.in_(card_ids)),
    )


def list_activities(session, user_id, workspace_id=None, action=None,
                    entity_type=None, page=1, limit=50):
    """Activity on workspaces, boards and cards the user can see.

    Returns:
        (logs, total) for the requested page, newest first.

    Raises:
        NotMember: `workspace_id` was given and the user is not a member.
    """
    workspace_ids = [
        row.workspace_id
        for row in session.query(WorkspaceMember.workspace_id).filter_by(user_id=user_id)
    ]

    if workspace_id:
        if workspace_id not in workspace_ids:
            raise NotMember()
        workspace_ids = [workspace_id]

    if not workspace_ids:
        return [], 0

    query = session.query(ActivityLog).filter(visible_activity_filter(workspace_ids))
    if action:
        query = query.filter(ActivityLog.action == action)
    if entity_type:
        query = query.filter(ActivityLog.entity_type == entity_type)

    total = query.count()
    logs = (
        query.order_by(ActivityLog.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return logs, total


def activity_stats(session, user_id, days=30, now=None):
    """Count the user's own actions over the last `days`, grouped by action."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=days)

    rows = (
        session.query(ActivityLog.action, func.count(ActivityLog.id))
        .filter(ActivityLog.user_id == user_id, ActivityLog.created_at >= since)
        .group_by(ActivityLog.action)
        .order_by(func.count(ActivityLog.id).desc())
        .all()
    )
    by_action = [{"action": action, "count": count} for action, count in rows]
    return {
        "days": days,
        "total": sum(item["count"] for item in by_action),
        "by_action": by_action,
    }


def cleanup_old_activity(session, now=None, retention_days=30):
    """Delete activity rows older than the retention window. Returns the count."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=retention_days)

    deleted = (
        session.query(ActivityLog)
        .filter(ActivityLog.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    if deleted:
        logger.info("Deleted %d activity log(s) older than %d days", deleted, retention_days)
    else:
        logger.info("No activity logs older than %d days", retention_days)
    return deleted
