"""Notification service — in-app notifications, email preferences, senders.

The `notify_*` functions are background tasks: blueprints dispatch them
with run_in_background() after committing, passing plain ids. Each one
creates the in-app notification, commits, then sends an immediate email
when the receiver's settings allow it.

The remaining functions take the session explicitly and flush only.
"""

import logging
from datetime import datetime, timezone

from flask import current_app

from app.errors import NotFound, ValidationError
from app.extensions import db
from app.models.board import Board
from app.models.card import Card, make_card_key
from app.models.invite import WorkspaceInvitation
from app.models.notification import Notification, NotificationSetting
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from app.services.email_service import send_email

logger = logging.getLogger(__name__)

SETTING_FLAGS = (
    "email_notifications",
    "task_assigned_email",
    "workspace_invite_email",
    "invitation_response_email",
    "email_digest_enabled",
)


# ──────────────────────────────────────────────
# Notifications
# ──────────────────────────────────────────────

def create_notification(session, receiver_id, type, title, message=None,
                        sender_id=None, workspace_id=None, card_id=None,
                        invitation_id=None):
    notification = Notification(
        receiver_id=receiver_id,
        sender_id=sender_id,
        type=type,
        title=title,
        message=message,
        workspace_id=workspace_id,
        card_id=card_id,
        invitation_id=invitation_id,
    )
    session.add(notification)
    session.flush()
    return notification


def list_notifications(session, user_id, unread_only=False, page=1, limit=20):
    """Returns (notifications, total, unread_count), newest first."""
    query = session.query(Notification).filter_by(receiver_id=user_id)
    if unread_only:
        query = query.filter_by(is_read=False)

    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total, unread_count(session, user_id)


def unread_count(session, user_id):
    return (
        session.query(Notification)
        .filter_by(receiver_id=user_id, is_read=False)
        .count()
    )


def _get_own_notification(session, user_id, notification_id):
    notification = session.get(Notification, notification_id)
    # Someone else's notification is reported as missing.
    if notification is None or notification.receiver_id != user_id:
        raise NotFound("Notification not found.")
    return notification


def mark_read(session, user_id, notification_id):
    notification = _get_own_notification(session, user_id, notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        session.flush()
    return notification


def mark_all_read(session, user_id):
    """Mark every unread notification of the user as read. Returns the count."""
    updated = (
        session.query(Notification)
        .filter_by(receiver_id=user_id, is_read=False)
        .update(
            {"is_read": True, "read_at": datetime.now(timezone.utc)},
            synchronize_session=False,
        )
    )
    return updated


def delete_notification(session, user_id, notification_id):
    notification = _get_own_notification(session, user_id, notification_id)
    session.delete(notification)
    session.flush()


# ──────────────────────────────────────────────
# Settings
# ──────────────────────────────────────────────

def get_settings(session, user_id):
    """Return the user's NotificationSetting, creating it with defaults."""
    setting = session.query(NotificationSetting).filter_by(user_id=user_id).first()
    if setting is None:
        setting = NotificationSetting(user_id=user_id)
        session.add(setting)
        session.flush()
    return setting


def update_settings(session, user_id, data):
    """Upsert the user's settings from a partial dict.

    Raises:
        ValidationError: unknown frequency or non-boolean flag.
    """
    frequency = data.get("email_digest_frequency")
    if frequency is not None and frequency not in NotificationSetting.FREQUENCIES:
        raise ValidationError(
            f"Invalid digest frequency '{frequency}'. "
            f"Must be one of: {', '.join(NotificationSetting.FREQUENCIES)}"
        )
    for flag in SETTING_FLAGS:
        if flag in data and not isinstance(data[flag], bool):
            raise ValidationError(f"'{flag}' must be true or false.")

    setting = get_settings(session, user_id)
    for flag in SETTING_FLAGS:
        if flag in data:
            setattr(setting, flag, data[flag])
    if frequency is not None:
        setting.email_digest_frequency = frequency
    session.flush()
    return setting


def _wants_email(session, user_id, flag):
    setting = session.query(NotificationSetting).filter_by(user_id=user_id).first()
    if setting is None:
        return True  # defaults: everything on
    return setting.email_notifications and getattr(setting, flag)


def _frontend_url(path):
    return f"{current_app.config['FRONTEND_URL'].rstrip('/')}{path}"


# ──────────────────────────────────────────────
# Background senders
# ──────────────────────────────────────────────

def notify_task_assigned(assigner_id, assignee_id, card_id):
    session = db.session
    assigner = session.get(User, assigner_id)
    assignee = session.get(User, assignee_id)
    card = session.get(Card, card_id)
    if assigner is None or assignee is None or card is None:
        logger.warning(
            "Task-assigned notification skipped: assigner=%s assignee=%s card=%s",
            assigner_id, assignee_id, card_id,
        )
        return

    board = card.board
    key = make_card_key(board.key_slug, card.key_seq)
    assigner_name = assigner.full_name or assigner.email

    create_notification(
        session,
        receiver_id=assignee.id,
        sender_id=assigner.id,
        type="task_assigned",
        title="New task assigned",
        message=f'{assigner_name} assigned you "{card.title}" ({key})',
        workspace_id=board.workspace_id,
        card_id=card.id,
    )
    session.commit()

    if _wants_email(session, assignee.id, "task_assigned_email"):
        send_email(
            to=assignee.email,
            subject=f"New task: {card.title}",
            template="emails/task_assigned.html",
            context={
                "assigner_name": assigner_name,
                "card": card.to_dict(),
                "task_url": _frontend_url(
                    f"/workspaces/{board.workspace_id}/boards/{board.id}"
                ),
            },
        )


def notify_workspace_invitation(inviter_id, invitation_id):
    session = db.session
    invitation = session.get(WorkspaceInvitation, invitation_id)
    inviter = session.get(User, inviter_id)
    if invitation is None or inviter is None:
        logger.warning("Invitation notification skipped: invitation=%s", invitation_id)
        return

    workspace = invitation.workspace
    inviter_name = inviter.full_name or inviter.email
    accept_url = _frontend_url(f"/invitations/{invitation.id}")

    receiver = session.query(User).filter_by(email=invitation.email).first()
    if receiver is not None:
        create_notification(
            session,
            receiver_id=receiver.id,
            sender_id=inviter.id,
            type="workspace_invitation",
            title="Workspace invitation",
            message=f'{inviter_name} invited you to join "{workspace.name}"',
            workspace_id=workspace.id,
            invitation_id=invitation.id,
        )
        session.commit()

    # Unregistered addresses always get the email; it is their only channel.
    if receiver is None or _wants_email(session, receiver.id, "workspace_invite_email"):
        send_email(
            to=invitation.email,
            subject=f"Invitation to join {workspace.name}",
            template="emails/workspace_invitation.html",
            context={
                "inviter_name": inviter_name,
                "workspace_name": workspace.name,
                "role": invitation.role,
                "accept_url": accept_url,
            },
        )


def notify_invitation_response(invitation_id, responder_id):
    session = db.session
    invitation = session.get(WorkspaceInvitation, invitation_id)
    responder = session.get(User, responder_id)
    if invitation is None or responder is None or not invitation.invited_by_id:
        return

    inviter = session.get(User, invitation.invited_by_id)
    if inviter is None:
        return

    workspace = invitation.workspace
    accepted = invitation.status == "accepted"
    responder_name = responder.full_name or responder.email
    verb = "accepted" if accepted else "declined"

    create_notification(
        session,
        receiver_id=inviter.id,
        sender_id=responder.id,
        type="invitation_accepted" if accepted else "invitation_rejected",
        title="Invitation response",
        message=f'{responder_name} {verb} your invitation to "{workspace.name}"',
        workspace_id=workspace.id,
    )
    session.commit()

    if _wants_email(session, inviter.id, "invitation_response_email"):
        send_email(
            to=inviter.email,
            subject=f"Invitation {verb}: {workspace.name}",
            template="emails/invitation_response.html",
            context={
                "responder_name": responder_name,
                "workspace_name": workspace.name,
                "accepted": accepted,
            },
        )


def _notify_board_event(actor_id, board_id, type, title, verb, template):
    session = db.session
    actor = session.get(User, actor_id)
    board = session.get(Board, board_id)
    if actor is None or board is None:
        return

    workspace = session.get(Workspace, board.workspace_id)
    actor_name = actor.full_name or actor.email
    receivers = (
        session.query(User)
        .join(WorkspaceMember, WorkspaceMember.user_id == User.id)
        .filter(
            WorkspaceMember.workspace_id == board.workspace_id,
            User.id != actor.id,
        )
        .all()
    )

    for receiver in receivers:
        create_notification(
            session,
            receiver_id=receiver.id,
            sender_id=actor.id,
            type=type,
            title=title,
            message=f'{actor_name} {verb} board "{board.name}" in "{workspace.name}"',
            workspace_id=workspace.id,
        )
    session.commit()

    for receiver in receivers:
        if _wants_email(session, receiver.id, "email_notifications"):
            send_email(
                to=receiver.email,
                subject=f"{title}: {board.name}",
                template=template,
                context={
                    "actor_name": actor_name,
                    "board_name": board.name,
                    "workspace_name": workspace.name,
                    "board_url": _frontend_url(
                        f"/workspaces/{workspace.id}/boards/{board.id}"
                    ),
                },
            )


def notify_board_created(actor_id, board_id):
    _notify_board_event(
        actor_id, board_id, "board_created", "New board", "created",
        "emails/board_created.html",
    )


def notify_board_trashed(actor_id, board_id):
    _notify_board_event(
        actor_id, board_id, "board_trashed", "Board moved to trash", "moved to trash",
        "emails/board_trashed.html",
    )
