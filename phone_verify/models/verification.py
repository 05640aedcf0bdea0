# phone_verify/models/verification.py
from enum import Enum
from typing import Optional, Dict, Any


class VerificationState(str, Enum):
    NEW = "NEW"
    CODE_SENT = "CODE_SENT"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"


class InvalidTransitionError(Exception):
    def __init__(self, current: VerificationState, action: str):
        super().__init__(f"Cannot {action} a session in state {current.value}")
        self.current = current
        self.action = action


class VerificationSession:
    """One verification attempt for a phone number.

    Sessions live only for the duration of a request. Between steps the
    caller carries ``verification_id`` (and optionally the phone number) and
    rebuilds the session with :meth:`resume`.
    """

    def __init__(self, phone_number: str):
        self._phone_number = phone_number
        self.verification_id: Optional[str] = None
        self.state = VerificationState.NEW
        self.last_error: Optional[str] = None

    @classmethod
    def resume(cls, verification_id: str, phone_number: str = "") -> "VerificationSession":
        session = cls(phone_number)
        session.verification_id = verification_id
        session.state = VerificationState.CODE_SENT
        return session

    @property
    def phone_number(self) -> str:
        return self._phone_number

    @phone_number.setter
    def phone_number(self, value: str) -> None:
        if self.state != VerificationState.NEW:
            raise InvalidTransitionError(self.state, "change the phone number of")
        self._phone_number = value

    @property
    def is_verified(self) -> bool:
        return self.state == VerificationState.VERIFIED

    def mark_code_sent(self, verification_id: str) -> None:
        if self.state not in (VerificationState.NEW, VerificationState.CODE_SENT):
            raise InvalidTransitionError(self.state, "send a code for")
        if not verification_id:
            raise ValueError("verification_id must be issued by the provider")
        # a re-send replaces the previous id
        self.verification_id = verification_id
        self.state = VerificationState.CODE_SENT
        self.last_error = None

    def mark_verified(self) -> None:
        if self.state != VerificationState.CODE_SENT:
            raise InvalidTransitionError(self.state, "verify")
        self.state = VerificationState.VERIFIED
        self.last_error = None

    def record_failure(self, message: str, terminal: bool = False) -> None:
        if self.state == VerificationState.VERIFIED:
            raise InvalidTransitionError(self.state, "record a failure on")
        self.last_error = message
        if terminal:
            self.state = VerificationState.FAILED
            self.verification_id = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phone_number": self.phone_number,
            "verification_id": self.verification_id,
            "state": self.state.value,
            "last_error": self.last_error,
        }

    def __repr__(self) -> str:
        return f"VerificationSession(state={self.state.value}, verification_id={self.verification_id!r})"
