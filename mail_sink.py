"""
Ads Report Scripts – SMTP notification sink.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol, Sequence

from config import EMAIL_FROM, SMTP_HOST, SMTP_PASSWORD, SMTP_PORT, SMTP_USER

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def send(self, recipients: Sequence[str], subject: str, html: str, text: str) -> None:
        ...


class SmtpNotificationSink:
    """multipart/alternative mail over SMTP (STARTTLS + login when a user is set)."""

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        user: str = SMTP_USER,
        password: str = SMTP_PASSWORD,
        sender: str = EMAIL_FROM,
        timeout: int = 30,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)

    def build_message(self, recipients: Sequence[str], subject: str, html: str, text: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send(self, recipients: Sequence[str], subject: str, html: str, text: str) -> None:
        if not self.configured:
            raise RuntimeError("SMTP not configured (SMTP_HOST, EMAIL_FROM or SMTP_USER in .env)")
        if not recipients:
            raise ValueError("No email recipients")
        msg = self.build_message(recipients, subject, html, text)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.user:
                server.starttls()
                server.login(self.user, self.password)
            server.send_message(msg)
        logger.info("Email sent to %s: %s", ", ".join(recipients), subject)
