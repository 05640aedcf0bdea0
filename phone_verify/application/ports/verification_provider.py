from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class ProviderErrorKind(str, Enum):
    INPUT_REJECTED = "input_rejected"
    CODE_REJECTED = "code_rejected"
    CODE_EXPIRED = "code_expired"
    IDENTIFIER_INVALID = "identifier_invalid"
    TRANSPORT_FAILURE = "transport_failure"

    @property
    def is_terminal(self) -> bool:
        """True when the verification id can no longer be checked."""
        return self in (ProviderErrorKind.CODE_EXPIRED, ProviderErrorKind.IDENTIFIER_INVALID)


class ProviderError(Exception):
    """Failure reported by a verification provider.

    ``code`` is the provider's own machine code and is never interpreted by the
    flow. ``description`` is surfaced to the user unmodified.
    """

    def __init__(self, kind: ProviderErrorKind, description: str, code: Optional[str] = None):
        super().__init__(description)
        self.kind = kind
        self.description = description
        self.code = code

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value!r}, code={self.code!r}, description={self.description!r})"


class ProviderNotConfiguredError(ProviderError):
    def __init__(self, description: str = "Verification provider is not configured"):
        super().__init__(ProviderErrorKind.TRANSPORT_FAILURE, description, code="not_configured")


@dataclass(frozen=True)
class VerificationOptions:
    template: str


class VerificationProvider(Protocol):
    def request_code(self, phone_number: str, options: VerificationOptions) -> str:
        ...

    def check_code(self, verification_id: str, code: str) -> None:
        ...
