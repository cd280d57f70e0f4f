"""Wiring of ports to adapters for the HTTP layer. Tests replace these via ``dependency_overrides``."""
import logging
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends

from .core.config import settings
from .core.security import PasswordHasher, TokenSigner
from .database import engine
from .application.ports.account_store import AccountStore
from .application.ports.audit_logger import AuditLogger
from .application.ports.notifier import Notifier
from .application.ports.otp_store import OtpPolicy, OtpStore
from .application.services.identity_resolver import IdentityResolver
from .application.services.otp_service import OtpService
from .application.services.registration_service import RegistrationService
from .application.services.session_service import SessionService
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.notifications.channel_notifier import ChannelNotifier
from .infrastructure.notifications.smtp_notifier import SmtpNotifier
from .infrastructure.notifications.twilio_notifier import TwilioSmsNotifier
from .infrastructure.otp_store.memory_otp_store import InMemoryOtpStore
from .infrastructure.otp_store.redis_otp_store import RedisOtpStore
from .infrastructure.persistence.sqlalchemy.repositories.account_repository_sql import SqlAccountStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_otp_store() -> OtpStore:
    policy = OtpPolicy.from_settings(settings)
    if settings.REDIS_URL:
        logger.info("Redis OTP store initialized")
        return RedisOtpStore(settings.REDIS_URL, policy=policy, socket_timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS)
    logger.warning("REDIS_URL not set, using in-memory OTP store (single process only)")
    return InMemoryOtpStore(policy)


@lru_cache()
def get_account_store() -> AccountStore:
    return SqlAccountStore(engine)


@lru_cache()
def get_notifier() -> Notifier:
    email = None
    if settings.SMTP_HOST:
        email = SmtpNotifier(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            from_email=settings.SMTP_FROM,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
        )
    sms = None
    if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
        sms = TwilioSmsNotifier()
    return ChannelNotifier(email=email, sms=sms)


@lru_cache()
def get_audit_logger() -> AuditLogger:
    return StdAuditLogger()


@lru_cache()
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=settings.BCRYPT_ROUNDS)


def get_token_signer() -> TokenSigner:
    return TokenSigner(settings.SECRET_KEY, settings.ALGORITHM)


def get_identity_resolver(accounts: AccountStore = Depends(get_account_store)) -> IdentityResolver:
    return IdentityResolver(accounts=accounts, timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS)


def get_otp_service(store: OtpStore = Depends(get_otp_store), notifier: Notifier = Depends(get_notifier)) -> OtpService:
    return OtpService(
        store=store,
        notifier=notifier,
        policy=OtpPolicy.from_settings(settings),
        timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
    )


def get_registration_service(
    resolver: IdentityResolver = Depends(get_identity_resolver),
    otp: OtpService = Depends(get_otp_service),
    accounts: AccountStore = Depends(get_account_store),
    hasher: PasswordHasher = Depends(get_password_hasher),
    audit: AuditLogger = Depends(get_audit_logger),
) -> RegistrationService:
    return RegistrationService(
        resolver=resolver,
        otp=otp,
        accounts=accounts,
        hasher=hasher,
        audit=audit,
        timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
    )


def get_session_service(
    resolver: IdentityResolver = Depends(get_identity_resolver),
    hasher: PasswordHasher = Depends(get_password_hasher),
    signer: TokenSigner = Depends(get_token_signer),
    audit: AuditLogger = Depends(get_audit_logger),
) -> SessionService:
    return SessionService(
        resolver=resolver,
        hasher=hasher,
        signer=signer,
        access_lifetime=timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS),
        refresh_lifetime=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        audit=audit,
    )
