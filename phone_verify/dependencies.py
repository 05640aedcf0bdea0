import logging
from functools import lru_cache

from .application.ports.audit_logger import AuditLogger
from .application.ports.verification_provider import VerificationProvider
from .application.services.verification_flow import VerificationFlow
from .core.config import get_settings
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.verification.memory_provider import InMemoryVerificationProvider
from .infrastructure.verification.twilio_provider import TwilioVerificationProvider

logger = logging.getLogger(__name__)


@lru_cache()
def get_verification_provider() -> VerificationProvider:
    settings = get_settings()
    if settings.VERIFY_PROVIDER == "memory":
        logger.warning("Using in-memory verification provider; codes are logged, not delivered")
        return InMemoryVerificationProvider(
            code_length=settings.MEMORY_CODE_LENGTH,
            ttl_seconds=settings.MEMORY_CODE_TTL_SECONDS,
            max_attempts=settings.MEMORY_MAX_CHECK_ATTEMPTS,
        )
    return TwilioVerificationProvider(settings=settings)


@lru_cache()
def get_audit_logger() -> AuditLogger:
    return StdAuditLogger()


def get_verification_flow() -> VerificationFlow:
    settings = get_settings()
    return VerificationFlow(
        provider=get_verification_provider(),
        template=settings.VERIFY_MESSAGE_TEMPLATE,
        timeout_seconds=settings.PROVIDER_TIMEOUT_SECONDS,
        audit=get_audit_logger(),
    )


def provider_status() -> dict:
    provider = get_verification_provider()
    configured = getattr(provider, "is_configured", True)
    return {"provider": get_settings().VERIFY_PROVIDER, "configured": bool(configured)}
