"""Fire-and-forget execution for side effects (emails, notifications, activity).

Tasks run on a daemon thread inside a fresh app context, so they get their
own db.session and never share the request's transaction. Dispatch only
after the caller has committed. A failing task is logged and dropped; it
is never retried and never reaches the caller.

With BACKGROUND_TASKS_SYNC set (tests) the task runs inline on the
current app context, still logging and swallowing failures.
"""

import logging
import threading

from flask import current_app

from app.extensions import db

logger = logging.getLogger(__name__)


def _run_task(func, args, kwargs):
    try:
        func(*args, **kwargs)
    except Exception:
        logger.exception("Background task %s failed", getattr(func, "__name__", func))
        db.session.rollback()


def _run_in_context(app, func, args, kwargs):
    with app.app_context():
        _run_task(func, args, kwargs)


def run_in_background(func, *args, **kwargs):
    """Run `func(*args, **kwargs)` without blocking the caller.

    Pass plain ids, not ORM objects: the task opens its own session.

    Returns:
        The started Thread, or None when the task ran inline.
    """
    app = current_app._get_current_object()

    if app.config.get("BACKGROUND_TASKS_SYNC"):
        _run_task(func, args, kwargs)
        return None

    thread = threading.Thread(target=_run_in_context, args=(app, func, args, kwargs))
    thread.daemon = True
    thread.start()
    return thread
