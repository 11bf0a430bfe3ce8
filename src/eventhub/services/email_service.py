"""Transactional email via SendGrid.

Learn: Email is best-effort. Every helper returns True/False and never
raises: a failed welcome email must not fail the signup that triggered
it. Routes schedule these with FastAPI BackgroundTasks, which runs sync
functions in a worker thread after the response has been sent, so a
slow mail API never delays a request.

With no EVENTHUB_SENDGRID_API_KEY configured (local dev, tests) delivery
is skipped and logged.
"""

from html import escape

import structlog
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from eventhub.config import settings

logger = structlog.get_logger()

_FOOTER = "<p>Best regards,<br>The EventHub Team</p>"


def send_email(subject: str, html_content: str, recipient: str) -> bool:
    """Send one email. Returns whether SendGrid accepted it."""
    if not settings.sendgrid_api_key:
        logger.info("email.skipped", reason="not configured", subject=subject)
        return False

    message = Mail(
        from_email=settings.mail_sender,
        to_emails=recipient,
        subject=subject,
        html_content=html_content,
    )

    try:
        response = SendGridAPIClient(settings.sendgrid_api_key).send(message)
    except Exception as e:
        # python-http-client raises HTTPError subclasses carrying status_code/body
        logger.error(
            "email.failed",
            subject=subject,
            status=getattr(e, "status_code", None),
            error=str(e),
        )
        return False

    status = getattr(response, "status_code", None)
    if not isinstance(status, int) or not 200 <= status < 300:
        logger.error("email.rejected", subject=subject, status=status)
        return False

    logger.info("email.sent", subject=subject, status=status)
    return True


def send_welcome_email(email: str, role: str) -> bool:
    """Greet a new user and list what their role allows."""
    abilities = ["<li>View and RSVP to events</li>"]
    if role == "ORGANIZER":
        abilities.append("<li>Create and manage your own events</li>")
    if role == "ADMIN":
        abilities.append("<li>Approve events and manage the platform</li>")

    html_content = "".join(
        (
            "<h2>Welcome to EventHub!</h2>",
            "<p>Thank you for registering with our event platform.</p>",
            f"<p>Your account has been created with the role: <strong>{escape(role)}</strong></p>",
            "<p>You can now:</p>",
            "<ul>",
            *abilities,
            "</ul>",
            _FOOTER,
        )
    )
    return send_email("Welcome to EventHub!", html_content, email)


def send_event_notification_email(email: str, event_title: str, action: str) -> bool:
    """Tell an organizer something happened to their event, e.g. "approved"."""
    title = escape(event_title)
    html_content = "".join(
        (
            "<h2>Event Update</h2>",
            f"<p>The event <strong>\"{title}\"</strong> has been {escape(action)}.</p>",
            "<p>Check out the latest updates in EventHub!</p>",
            _FOOTER,
        )
    )
    return send_email(f"Event Update: {event_title}", html_content, email)
