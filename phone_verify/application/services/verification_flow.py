import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..ports.audit_logger import AuditLogger
from ..ports.verification_provider import (
    ProviderError,
    ProviderErrorKind,
    VerificationOptions,
    VerificationProvider,
)
from ...models.verification import VerificationSession, VerificationState

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "timeout"
UNAVAILABLE_MESSAGE = "verification provider unavailable"


@dataclass
class StartResult:
    ok: bool
    verification_id: Optional[str] = None
    message: Optional[str] = None
    error_kind: Optional[ProviderErrorKind] = None
    session: Optional[VerificationSession] = field(default=None, repr=False, compare=False)

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": self.ok}
        if self.verification_id is not None:
            data["verification_id"] = self.verification_id
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass
class VerifyResult:
    ok: bool
    verification_id: Optional[str] = None
    message: Optional[str] = None
    error_kind: Optional[ProviderErrorKind] = None
    restart: bool = False
    session: Optional[VerificationSession] = field(default=None, repr=False, compare=False)

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": self.ok}
        if self.verification_id is not None:
            data["verification_id"] = self.verification_id
        if self.message is not None:
            data["message"] = self.message
        if self.restart:
            data["restart"] = True
        return data


@dataclass
class VerificationFlow:
    """Drives a :class:`VerificationSession` through code request and check.

    Both operations return result values; provider failures, timeouts and
    unexpected adapter errors never propagate to the caller. Nothing is
    retried here.
    """

    provider: VerificationProvider
    template: str
    timeout_seconds: float = 10.0
    audit: Optional[AuditLogger] = None

    async def start(self, phone_number: str, session: Optional[VerificationSession] = None) -> StartResult:
        if session is None or session.state == VerificationState.FAILED or session.phone_number != phone_number:
            session = VerificationSession(phone_number)

        if session.is_verified:
            return StartResult(ok=False, message="phone number is already verified", session=session)

        if not phone_number or not phone_number.strip():
            session.record_failure("phone number is required")
            return StartResult(ok=False, message=session.last_error, error_kind=ProviderErrorKind.INPUT_REJECTED, session=session)

        try:
            verification_id = await self._call(self.provider.request_code, phone_number, VerificationOptions(template=self.template))
        except ProviderError as e:
            session.record_failure(e.description)
            logger.info(f"Code request rejected ({e.kind.value}): {e.description}")
            self._audit("verification.start", phone_number, None, False, {"error_kind": e.kind.value, "error_code": e.code})
            return StartResult(ok=False, message=e.description, error_kind=e.kind, session=session)

        session.mark_code_sent(verification_id)
        logger.info(f"Verification code sent, id={verification_id}")
        self._audit("verification.start", phone_number, verification_id, True)
        return StartResult(ok=True, verification_id=verification_id, session=session)

    async def submit_code(self, verification_id: str, code: str, session: Optional[VerificationSession] = None) -> VerifyResult:
        if not verification_id:
            # a check may only follow a successful code request
            return VerifyResult(
                ok=False,
                message="verification id is required",
                error_kind=ProviderErrorKind.IDENTIFIER_INVALID,
                restart=True,
                session=session,
            )

        if session is None:
            session = VerificationSession.resume(verification_id)
        elif session.state != VerificationState.CODE_SENT:
            return VerifyResult(
                ok=False,
                verification_id=verification_id,
                message=f"verification session is {session.state.value}",
                error_kind=ProviderErrorKind.IDENTIFIER_INVALID,
                restart=session.state != VerificationState.VERIFIED,
                session=session,
            )
        elif session.verification_id != verification_id:
            session.last_error = "verification id has been replaced by a newer request"
            return VerifyResult(
                ok=False,
                verification_id=verification_id,
                message=session.last_error,
                error_kind=ProviderErrorKind.IDENTIFIER_INVALID,
                session=session,
            )

        try:
            await self._call(self.provider.check_code, verification_id, code)
        except ProviderError as e:
            session.record_failure(e.description, terminal=e.kind.is_terminal)
            logger.info(f"Code check failed for id={verification_id} ({e.kind.value}): {e.description}")
            self._audit("verification.check", session.phone_number or None, verification_id, False, {"error_kind": e.kind.value, "error_code": e.code})
            return VerifyResult(
                ok=False,
                verification_id=verification_id,
                message=e.description,
                error_kind=e.kind,
                restart=e.kind.is_terminal,
                session=session,
            )

        session.mark_verified()
        logger.info(f"Verification approved, id={verification_id}")
        self._audit("verification.check", session.phone_number or None, verification_id, True)
        return VerifyResult(ok=True, session=session)

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        name = getattr(fn, "__name__", "provider call")
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Verification provider {name} timed out after {self.timeout_seconds}s")
            raise ProviderError(ProviderErrorKind.TRANSPORT_FAILURE, TIMEOUT_MESSAGE, code="timeout")
        except ProviderError:
            raise
        except Exception as e:
            logger.error(f"Verification provider {name} failed: {e}", exc_info=True)
            raise ProviderError(ProviderErrorKind.TRANSPORT_FAILURE, UNAVAILABLE_MESSAGE, code="unexpected") from e

    def _audit(self, action: str, phone: Optional[str], verification_id: Optional[str], success: bool, details: Optional[Dict[str, Any]] = None) -> None:
        if self.audit is None:
            return
        self.audit.log(action, phone, verification_id=verification_id, success=success, details=details)
