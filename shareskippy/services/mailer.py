"""SMTP delivery for transactional email.

:class:`Mailer` is created once per application by the factory and
stored in ``app.extensions["mailer"]``. Settings come from the app
config (``SMTP_*`` and ``MAIL_*`` keys). With ``MAIL_SUPPRESS_SEND``
enabled, which is the default under ``TESTING``, messages are appended
to :attr:`Mailer.outbox` instead of being delivered.
"""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from flask import current_app

from ..errors import EmailError

logger = logging.getLogger(__name__)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str
    sender: str


class Mailer:
    def __init__(self, app=None) -> None:
        self.outbox: list[OutgoingEmail] = []
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        config = app.config
        self.host: str = config.get("SMTP_HOST", "")
        self.port: int = int(config.get("SMTP_PORT", 587))
        self.username: str = config.get("SMTP_USERNAME", "")
        self.password: str = config.get("SMTP_PASSWORD", "")
        self.use_tls: bool = bool(config.get("SMTP_USE_TLS", True))
        self.use_ssl: bool = bool(config.get("SMTP_USE_SSL", False))
        self.timeout: float = float(config.get("SMTP_TIMEOUT", 10))
        self.sender: str = config["MAIL_FROM"]
        self.suppress: bool = bool(config.get("MAIL_SUPPRESS_SEND", False))
        app.extensions["mailer"] = self

    def _build_message(self, email: OutgoingEmail) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = email.subject
        message["From"] = email.sender
        message["To"] = email.to
        message.set_content(email.text)
        message.add_alternative(email.html, subtype="html")
        return message

    def send(self, to: str, subject: str, html: str, text: str, sender: Optional[str] = None) -> bool:
        """Deliver one message.

        Returns ``True`` when the message was handed to the SMTP server
        (or to the outbox when suppressed) and ``False`` when no SMTP host
        is configured. Raises :class:`EmailError` if delivery fails.
        """
        if not to:
            raise EmailError("Cannot send an email without a recipient.")
        email = OutgoingEmail(to=to, subject=subject, html=html, text=text, sender=sender or self.sender)
        if self.suppress:
            self.outbox.append(email)
            logger.debug("Suppressed email to %s: %s", to, subject)
            return True
        if not self.host:
            logger.warning("SMTP_HOST is not configured; skipping email to %s (%s)", to, subject)
            return False

        smtp_cls = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        try:
            with smtp_cls(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls and not self.use_ssl:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(self._build_message(email))
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailError(f"SMTP delivery to {to} failed: {exc}") from exc
        logger.info("Sent email to %s: %s", to, subject)
        return True


def get_mailer() -> Mailer:
    return current_app.extensions["mailer"]
