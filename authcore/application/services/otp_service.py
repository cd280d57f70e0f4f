import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

from ..ports.notifier import Notifier
from ..ports.otp_store import OtpPolicy, OtpStore, minutes
from ...exceptions import DeliveryFailedError
from ...utils import bounded, generate_otp_code, generate_otp_reference, hash_identifier

logger = logging.getLogger(__name__)


@dataclass
class OtpDispatch:
    """What the caller learns about an issued code. Never the code itself."""
    identifier: str
    expires_in: int
    reference: str


def render_otp_message(code: str, ttl_seconds: int, name: Optional[str] = None) -> Tuple[str, str]:
    subject = "Verify your account"
    body = (
        f"Dear {name or 'User'},\n\n"
        f"Your verification code is {code}.\n"
        f"It expires in {minutes(ttl_seconds)}. If you did not request it, you can ignore this message.\n"
    )
    return subject, body


@dataclass
class OtpService:
    store: OtpStore
    notifier: Notifier
    policy: OtpPolicy = field(default_factory=OtpPolicy)
    timeout: float = 10.0
    code_factory: Callable[[], str] = generate_otp_code

    async def send_code(self, identifier: str, name: Optional[str] = None) -> OtpDispatch:
        """Run the gates, issue a fresh code and deliver it out of band.

        Gate failures propagate unchanged. A delivery failure leaves the issued
        code and the cooldown in place.
        """
        await bounded(self.store.check_restrictions(identifier), self.timeout, "OTP restriction check")
        await bounded(self.store.track_request(identifier), self.timeout, "OTP request tracking")

        code = self.code_factory()
        await bounded(self.store.issue(identifier, code), self.timeout, "OTP issuance")

        subject, body = render_otp_message(code, self.policy.ttl_seconds, name)
        delivered = await bounded(
            self.notifier.send(identifier, subject, body), self.timeout, "OTP delivery", error=DeliveryFailedError
        )
        if not delivered:
            logger.error(f"OTP delivery failed for {hash_identifier(identifier)[:12]}")
            raise DeliveryFailedError()

        logger.info(f"OTP sent to {hash_identifier(identifier)[:12]}")
        return OtpDispatch(
            identifier=identifier,
            expires_in=self.policy.ttl_seconds,
            reference=generate_otp_reference(identifier),
        )

    async def verify_code(self, identifier: str, code: str) -> None:
        await bounded(self.store.verify(identifier, code), self.timeout, "OTP verification")
