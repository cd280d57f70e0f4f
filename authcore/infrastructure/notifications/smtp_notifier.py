import logging
from email.message import EmailMessage
from typing import Optional

import aiosmtplib

from ...application.ports.notifier import Notifier
from ...utils import hash_identifier

logger = logging.getLogger(__name__)


class SmtpNotifier(Notifier):
    """Plain-text email delivery through an SMTP relay."""

    def __init__(self, host: str, port: int = 587, username: Optional[str] = None,
                 password: Optional[str] = None, from_email: str = "no-reply@example.com",
                 use_tls: bool = True, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_email
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)
        return message

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        message = self.build_message(recipient, subject, body)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Email delivery to {hash_identifier(recipient)[:12]} failed: {e}")
            return False
        logger.info(f"Email sent to {hash_identifier(recipient)[:12]}")
        return True
