"""
Email service for the Taskboard API.

Sends templated HTML email over SMTP. Two entry points:

- send_email: fire-and-forget, runs on a background thread; failures are
  logged and dropped.
- send_email_sync: blocks until SMTP accepts the message and raises
  EmailDeliveryError otherwise. Used by the digest job, which must know
  whether a digest went out before marking notifications as emailed.

Usage:
    from app.services.email_service import send_email

    send_email(
        to="user@example.com",
        subject="Hello",
        template="emails/task_assigned.html",
        context={"card": card_dict},
    )
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app, render_template

from app.errors import EmailDeliveryError
from app.services.background import run_in_background

logger = logging.getLogger(__name__)


def _build_message(app, to, subject, template, context, reply_to):
    from_name = app.config.get("MAIL_FROM_NAME", "Taskboard")
    from_email = app.config.get("MAIL_FROM_ADDRESS") or app.config.get("MAIL_USERNAME") or ""

    html_body = render_template(template, **(context or {}))

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_email}>"
    msg["To"] = to if isinstance(to, str) else ", ".join(to)

    if reply_to:
        msg["Reply-To"] = reply_to

    msg.attach(MIMEText(html_body, "html"))
    return msg


def _deliver(msg):
    """Hand a message to SMTP. Raises EmailDeliveryError on any failure."""
    app = current_app._get_current_object()

    if app.config.get("MAIL_SUPPRESS_SEND"):
        logger.info(f"Email suppressed: to={msg['To']} subject={msg['Subject']}")
        return

    host = app.config.get("MAIL_SMTP_HOST", "smtp.gmail.com")
    port = app.config.get("MAIL_SMTP_PORT", 587)
    username = app.config.get("MAIL_USERNAME")
    password = app.config.get("MAIL_PASSWORD")

    if not username or not password:
        raise EmailDeliveryError("MAIL_USERNAME or MAIL_PASSWORD not configured.")

    try:
        with smtplib.SMTP(host, port, timeout=30) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(username, password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise EmailDeliveryError(f"Failed to send email to {msg['To']}: {e}") from e

    logger.info(f"Email sent to {msg['To']} — {msg['Subject']}")


def send_email(to, subject, template, context=None, reply_to=None):
    """
    Send a templated HTML email without blocking the caller.

    Args:
        to:        Recipient email address (str or list).
        subject:   Email subject line.
        template:  Path to Jinja2 HTML template (relative to templates/).
        context:   Dict of variables to pass to the template.
        reply_to:  Optional reply-to address.
    """
    app = current_app._get_current_object()
    msg = _build_message(app, to, subject, template, context, reply_to)
    run_in_background(_deliver, msg)


def send_email_sync(to, subject, template, context=None, reply_to=None):
    """
    Same as send_email but blocks until sent.

    Raises:
        EmailDeliveryError: SMTP rejected the message or mail is not configured.
    """
    app = current_app._get_current_object()
    msg = _build_message(app, to, subject, template, context, reply_to)
    _deliver(msg)
