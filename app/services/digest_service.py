"""Digest service — periodic email digests of unread notifications.

For every user with digests enabled (frequency other than NEVER):
  - skip unless the cadence has elapsed since last_digest_sent_at
    (HOURLY 1h, DAILY 24h, WEEKLY 168h; never sent means due)
  - collect notifications not yet emailed; skip if there are none
  - send one email, and only once it is accepted mark those
    notifications emailed and stamp last_digest_sent_at, in one commit

A failing user is rolled back and logged; the run moves on to the next
user. run_once() holds a non-blocking lock so an overlapping trigger
returns immediately instead of double-sending.

Designed to be called from a Flask CLI command (`flask send-digests`) or
the `flask run-scheduler` loop.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone

from app.extensions import db
from app.models.notification import Notification, NotificationSetting
from app.services.email_service import send_email_sync
from app.services.validators import as_utc

logger = logging.getLogger(__name__)

_run_lock = threading.Lock()


def is_due(frequency, last_sent_at, now):
    """True when a digest at `frequency` may go out at `now`."""
    hours = NotificationSetting.THRESHOLD_HOURS.get(frequency)
    if hours is None:
        return False
    if last_sent_at is None:
        return True
    return now - as_utc(last_sent_at) >= timedelta(hours=hours)


def _pending_notifications(session, user_id):
    return (
        session.query(Notification)
        .filter(Notification.receiver_id == user_id, Notification.emailed_at.is_(None))
        .order_by(Notification.created_at.desc())
        .all()
    )


def process_digests(session, now=None):
    """Send every digest that is due at `now`.

    Returns:
        dict: counts of sent / not_due / empty / failed users.
    """
    now = now or datetime.now(timezone.utc)
    stats = {"sent": 0, "not_due": 0, "empty": 0, "failed": 0}

    settings = (
        session.query(NotificationSetting)
        .filter(
            NotificationSetting.email_digest_enabled.is_(True),
            NotificationSetting.email_digest_frequency != "NEVER",
        )
        .all()
    )
    logger.info("Digest run at %s: %d user(s) with digests enabled", now.isoformat(), len(settings))

    for setting in settings:
        user_id = setting.user_id
        try:
            user = setting.user
            if user is None or not user.is_active:
                continue

            if not is_due(setting.email_digest_frequency, setting.last_digest_sent_at, now):
                stats["not_due"] += 1
                continue

            notifications = _pending_notifications(session, user_id)
            if not notifications:
                stats["empty"] += 1
                continue

            send_email_sync(
                to=user.email,
                subject="Your notification digest",
                template="emails/digest.html",
                context={
                    "user_name": user.full_name or user.email,
                    "notifications": [n.to_dict() for n in notifications],
                    "frequency": setting.email_digest_frequency,
                },
            )

            for notification in notifications:
                notification.emailed_at = now
            setting.last_digest_sent_at = now
            session.commit()
            stats["sent"] += 1
            logger.info("Digest with %d notification(s) sent to %s", len(notifications), user.email)

        except Exception:
            session.rollback()
            stats["failed"] += 1
            logger.exception("Digest for user %s failed; will retry next run", user_id)

    logger.info(
        "Digest run done: sent=%d not_due=%d empty=%d failed=%d",
        stats["sent"], stats["not_due"], stats["empty"], stats["failed"],
    )
    return stats


def run_once(now=None, session=None):
    """One digest pass, skipped when another pass is still running.

    Returns:
        The stats dict, or None if the run was skipped.
    """
    if not _run_lock.acquire(blocking=False):
        logger.info("Digest run already in progress, skipping this trigger")
        return None
    try:
        return process_digests(session or db.session, now=now)
    finally:
        _run_lock.release()
