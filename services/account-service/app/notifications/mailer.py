"""SMTP delivery for account notification emails."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from ..config import Settings
from ..domain.errors import NotificationError

logger = logging.getLogger(__name__)


class SmtpMailer:
    """Sends plain-text email through an SMTP relay, one connection per message."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        """Store relay coordinates and credentials."""
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpMailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.smtp_sender,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
        )

    def send(self, recipient: str, subject: str, body: str) -> None:
        """Deliver a message or raise :class:`NotificationError`."""
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._username and self._password:
                    server.login(self._username, self._password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("smtp delivery to relay %s:%s failed: %s", self._host, self._port, exc)
            raise NotificationError(str(exc) or "email delivery failed") from exc
        logger.info("email %r delivered via %s", subject, self._host)
