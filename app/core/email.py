import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from app.core.config import Settings, settings
from app.core.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> None:
        ...


class SmtpEmailSender:
    """Sends HTML mail through an SMTP relay; every failure surfaces as EmailDeliveryError."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        sender_name: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.sender_name = sender_name
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to: str, subject: str, html_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.sender_name} <{self.sender}>" if self.sender_name else self.sender
        msg["To"] = to
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"Failed to send email to {to}: {exc}") from exc


class LoggingEmailSender:
    """Development sender used when no SMTP host is configured."""

    def send(self, to: str, subject: str, html_body: str) -> None:
        logger.info("Email to %s: %s\n%s", to, subject, html_body)


def build_email_sender(config: Settings) -> EmailSender:
    if not config.smtp_host:
        return LoggingEmailSender()
    return SmtpEmailSender(
        host=config.smtp_host,
        port=config.smtp_port,
        username=config.smtp_username,
        password=config.smtp_password,
        sender=config.email_sender,
        sender_name=config.email_sender_name,
        use_tls=config.smtp_use_tls,
        timeout=config.smtp_timeout_seconds,
    )


email_sender = build_email_sender(settings)


def get_email_sender() -> EmailSender:
    return email_sender
