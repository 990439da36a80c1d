"""SMTP gateway for send_notification."""

import html
import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib

from autorules.actions.channels.base import NotificationChannel, NotificationMessage
from autorules.core.config import get_settings
from autorules.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SUBJECT = "Automation notification"
MAX_SUBJECT_LENGTH = 100


def render_html(body: str) -> str:
    """Escape ``body`` and keep line breaks and ``**bold**`` markers."""
    escaped = html.escape(body).replace("\n", "<br>")
    escaped = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", escaped)
    return f"<html><body>{escaped}</body></html>"


def build_email(message: NotificationMessage, sender: str) -> MIMEMultipart:
    """Plain-text plus HTML alternative addressed to all recipients."""
    mail = MIMEMultipart("alternative")
    mail["Subject"] = (message.subject or DEFAULT_SUBJECT)[:MAX_SUBJECT_LENGTH]
    mail["From"] = sender
    mail["To"] = ", ".join(message.recipients)
    mail.attach(MIMEText(message.body, "plain", "utf-8"))
    mail.attach(MIMEText(render_html(message.body), "html", "utf-8"))
    return mail


class EmailChannel(NotificationChannel):
    """Sends one SMTP message per notification, all recipients in ``To``."""

    def __init__(self):
        self._settings = get_settings()

    @property
    def channel_type(self) -> str:
        return "email"

    @property
    def configured(self) -> bool:
        return bool(self._settings.smtp_host)

    async def send(self, message: NotificationMessage) -> bool:
        if not self.configured:
            logger.warning("Email gateway has no SMTP host", execution_id=message.execution_id)
            return False
        if not message.recipients:
            return False

        s = self._settings
        mail = build_email(message, sender=s.smtp_from or s.smtp_user)
        try:
            await aiosmtplib.send(
                mail,
                hostname=s.smtp_host,
                port=s.smtp_port,
                username=s.smtp_user or None,
                password=s.smtp_password or None,
                start_tls=s.smtp_use_tls,
                use_tls=not s.smtp_use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(
                "SMTP delivery failed",
                recipients=message.recipients,
                execution_id=message.execution_id,
                error=str(e),
            )
            return False

        logger.info("Email delivered", recipients=message.recipients, execution_id=message.execution_id)
        return True
