import logging
from typing import Optional

from ...application.ports.notifier import Notifier

logger = logging.getLogger(__name__)


def is_email(recipient: str) -> bool:
    return "@" in recipient


class ChannelNotifier(Notifier):
    """Sends to the email channel for addresses and to SMS for phone numbers."""

    def __init__(self, email: Optional[Notifier] = None, sms: Optional[Notifier] = None):
        self.email = email
        self.sms = sms

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        channel = self.email if is_email(recipient) else self.sms
        if channel is None:
            logger.error(f"No {'email' if is_email(recipient) else 'sms'} channel configured")
            return False
        return await channel.send(recipient, subject, body)
