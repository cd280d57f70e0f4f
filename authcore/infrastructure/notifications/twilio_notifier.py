import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from ...core.config import settings
from ...application.ports.notifier import Notifier
from ...utils import hash_identifier

logger = logging.getLogger(__name__)


class TwilioSmsNotifier(Notifier):
    def __init__(self, client: Optional[Client] = None, from_number: Optional[str] = None):
        self.client = client or Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
        self.from_number = from_number or settings.TWILIO_PHONE_NUMBER

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        if not self.from_number:
            logger.error("Twilio sender number not configured")
            return False
        try:
            message = await run_in_threadpool(
                self.client.messages.create, to=recipient, from_=self.from_number, body=body
            )
        except TwilioException as e:
            logger.error(f"SMS delivery to {hash_identifier(recipient)[:12]} failed: {e}")
            return False
        logger.info(f"SMS queued with sid {message.sid}")
        return True
