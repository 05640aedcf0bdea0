import logging
import re
import secrets
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ...application.ports.verification_provider import (
    ProviderError,
    ProviderErrorKind,
    VerificationOptions,
    VerificationProvider,
)
from ...core.config import CODE_PLACEHOLDER

logger = logging.getLogger(__name__)

_PHONE_RE = re.compile(r"^\+\d{8,15}$")


@dataclass
class _PendingCode:
    phone_number: str
    code: str
    expires_at: float
    attempts: int = 0


class InMemoryVerificationProvider(VerificationProvider):
    """Verification provider for local development and tests.

    Generated codes are written to the log instead of being delivered.
    Codes expire, allow a limited number of wrong attempts and are
    single use. Requesting a new code for a number invalidates the
    previous id for that number.
    """

    def __init__(
        self,
        code_length: int = 6,
        ttl_seconds: int = 600,
        max_attempts: int = 5,
        clock: Callable[[], float] = time.time,
        code_factory: Optional[Callable[[int], str]] = None,
    ) -> None:
        self.code_length = code_length
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self._clock = clock
        self._code_factory = code_factory or self._random_code
        self._pending: Dict[str, _PendingCode] = {}
        self._by_phone: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.sent_messages: Dict[str, str] = {}

    @staticmethod
    def _random_code(length: int) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(length))

    def request_code(self, phone_number: str, options: VerificationOptions) -> str:
        if not _PHONE_RE.match(phone_number or ""):
            raise ProviderError(ProviderErrorKind.INPUT_REJECTED, "is not a valid phone number", code="invalid_recipient")

        code = self._code_factory(self.code_length)
        verification_id = f"verif_{uuid.uuid4().hex}"
        message = options.template.replace(CODE_PLACEHOLDER, code)
        with self._lock:
            self._purge_expired()
            previous = self._by_phone.get(phone_number)
            if previous:
                self._pending.pop(previous, None)
            self._pending[verification_id] = _PendingCode(
                phone_number=phone_number,
                code=code,
                expires_at=self._clock() + self.ttl_seconds,
            )
            self._by_phone[phone_number] = verification_id
            # last message per pending number; dropped with the pending code
            self.sent_messages[phone_number] = message

        logger.info(f"[memory provider] SMS to {phone_number}: {message}")
        return verification_id

    def check_code(self, verification_id: str, code: str) -> None:
        with self._lock:
            pending = self._pending.get(verification_id)
            if pending is None:
                raise ProviderError(ProviderErrorKind.IDENTIFIER_INVALID, "verification not found", code="not_found")

            if self._clock() >= pending.expires_at:
                self._forget(verification_id, pending)
                raise ProviderError(ProviderErrorKind.CODE_EXPIRED, "verification code has expired", code="expired")

            if not secrets.compare_digest(pending.code.encode(), (code or "").encode()):
                pending.attempts += 1
                if pending.attempts >= self.max_attempts:
                    self._forget(verification_id, pending)
                    raise ProviderError(ProviderErrorKind.CODE_EXPIRED, "max check attempts reached", code="max_attempts")
                raise ProviderError(ProviderErrorKind.CODE_REJECTED, "the token is invalid", code="invalid_token")

            # single use
            self._forget(verification_id, pending)

    def _forget(self, verification_id: str, pending: _PendingCode) -> None:
        self._pending.pop(verification_id, None)
        if self._by_phone.get(pending.phone_number) == verification_id:
            del self._by_phone[pending.phone_number]
            self.sent_messages.pop(pending.phone_number, None)

    def _purge_expired(self) -> None:
        now = self._clock()
        for verification_id, pending in list(self._pending.items()):
            if now >= pending.expires_at:
                self._forget(verification_id, pending)
