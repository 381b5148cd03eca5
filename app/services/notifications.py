import logging
from html import escape
from typing import Optional, Tuple
from urllib.parse import urlencode

from app.core.email import EmailSender
from app.core.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


def send_quietly(sender: EmailSender, to: str, subject: str, html_body: str) -> bool:
    """Send an email without letting delivery problems fail the calling operation."""
    try:
        sender.send(to, subject, html_body)
    except EmailDeliveryError:
        logger.warning("Email delivery to %s failed (%s)", to, subject, exc_info=True)
        return False
    return True


def build_link(base_url: str, path: str, **params: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}?{urlencode(params)}"


def confirmation_email(username: str, link: str, expires_hours: int) -> Tuple[str, str]:
    body = (
        "<h2>Welcome!</h2>"
        f"<p>Hi {escape(username)},</p>"
        "<p>Please confirm your email address to activate your account:</p>"
        f'<p><a href="{escape(link)}">Confirm my email</a></p>'
        f"<p>The link expires in {expires_hours} hours.</p>"
    )
    return "Confirm your email address", body


def password_reset_email(username: str, link: str) -> Tuple[str, str]:
    body = (
        "<h2>Password reset</h2>"
        f"<p>Hi {escape(username)},</p>"
        "<p>We received a request to reset your password. Use the link below to choose a new one:</p>"
        f'<p><a href="{escape(link)}">Reset my password</a></p>'
        "<p>If you did not request this, you can ignore this email.</p>"
    )
    return "Reset your password", body


def listing_approved_email(username: str, title: str, condition_score: Optional[int]) -> Tuple[str, str]:
    score = f"<p><strong>Condition score:</strong> {condition_score}/100</p>" if condition_score is not None else ""
    body = (
        "<h2>Listing approved</h2>"
        f"<p>Dear {escape(username)},</p>"
        f"<p>Your listing <strong>{escape(title)}</strong> has been approved by our expert team.</p>"
        "<p><strong>Status:</strong> Published</p>"
        f"{score}"
        "<p>Your listing is now visible to potential buyers and renters.</p>"
    )
    return "Your listing has been approved!", body


def listing_rejected_email(
    username: str,
    title: str,
    reason: Optional[str],
    feedback: Optional[str],
) -> Tuple[str, str]:
    reason_html = f"<p><strong>Reason:</strong> {escape(reason)}</p>" if reason else ""
    feedback_html = f"<p><strong>Feedback:</strong> {escape(feedback)}</p>" if feedback else ""
    body = (
        "<h2>Listing review result</h2>"
        f"<p>Dear {escape(username)},</p>"
        f"<p>Your listing <strong>{escape(title)}</strong> has been reviewed by our expert team.</p>"
        "<p><strong>Status:</strong> Rejected</p>"
        f"{reason_html}{feedback_html}"
        "<p>Please review the feedback and adjust the listing before resubmitting.</p>"
    )
    return "Your listing has been reviewed", body
