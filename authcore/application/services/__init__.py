# Services package (re-export feature modules for stable imports)
from .identity_resolver import IdentityResolver, classify
from .otp_service import OtpService
from .registration_service import RegistrationService
from .session_service import SessionService

__all__ = [
    "IdentityResolver",
    "classify",
    "OtpService",
    "RegistrationService",
    "SessionService",
]
