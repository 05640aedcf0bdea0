import asyncio
import time

from phone_verify.application.ports.verification_provider import ProviderError, ProviderErrorKind, VerificationOptions, VerificationProvider
from phone_verify.application.services.verification_flow import VerificationFlow, TIMEOUT_MESSAGE, UNAVAILABLE_MESSAGE
from phone_verify.models.verification import VerificationSession, VerificationState

TEMPLATE = "Your verification code is %token."


class FakeProvider(VerificationProvider):
    def __init__(self, verification_id="verif_abc", valid_code="123456"):
        self.verification_id = verification_id
        self.valid_code = valid_code
        self.requests = []
        self.checks = []
        self.consumed = set()
        self.reject_phone = None
        self.expired = set()

    def request_code(self, phone_number: str, options: VerificationOptions) -> str:
        self.requests.append((phone_number, options.template))
        if phone_number == self.reject_phone:
            raise ProviderError(ProviderErrorKind.INPUT_REJECTED, "is not a valid phone number", code="21")
        return self.verification_id

    def check_code(self, verification_id: str, code: str) -> None:
        self.checks.append((verification_id, code))
        if verification_id in self.expired:
            raise ProviderError(ProviderErrorKind.CODE_EXPIRED, "The token has expired", code="20404")
        if verification_id != self.verification_id or verification_id in self.consumed:
            raise ProviderError(ProviderErrorKind.IDENTIFIER_INVALID, "verification not found", code="20404")
        if code != self.valid_code:
            raise ProviderError(ProviderErrorKind.CODE_REJECTED, "the token is invalid", code="10")
        self.consumed.add(verification_id)


class FakeAudit:
    def __init__(self):
        self.entries = []

    def log(self, action, phone, verification_id=None, success=True, details=None):
        self.entries.append((action, phone, verification_id, success))


def make_flow(provider=None, **kwargs):
    return VerificationFlow(provider=provider or FakeProvider(), template=TEMPLATE, **kwargs)


def test_start_success_moves_session_to_code_sent():
    provider = FakeProvider()
    flow = make_flow(provider)
    result = asyncio.run(flow.start("+15551234567"))
    assert result.ok is True
    assert result.verification_id == "verif_abc"
    assert result.session.state == VerificationState.CODE_SENT
    assert result.session.verification_id == "verif_abc"
    assert provider.requests == [("+15551234567", TEMPLATE)]


def test_start_rejected_returns_provider_message_verbatim():
    provider = FakeProvider()
    provider.reject_phone = "invalid"
    flow = make_flow(provider)
    result = asyncio.run(flow.start("invalid"))
    assert result.as_dict() == {"ok": False, "message": "is not a valid phone number"}
    assert result.verification_id is None
    assert result.error_kind == ProviderErrorKind.INPUT_REJECTED
    assert result.session.state == VerificationState.NEW
    assert result.session.verification_id is None
    assert result.session.last_error == "is not a valid phone number"


def test_start_with_empty_phone_does_not_call_provider():
    provider = FakeProvider()
    result = asyncio.run(make_flow(provider).start("   "))
    assert result.ok is False
    assert provider.requests == []


def test_full_scenario_start_then_correct_code():
    flow = make_flow()
    started = asyncio.run(flow.start("+15551234567"))
    result = asyncio.run(flow.submit_code(started.verification_id, "123456", session=started.session))
    assert result.as_dict() == {"ok": True}
    assert started.session.state == VerificationState.VERIFIED


def test_submit_code_without_session_resumes_from_id():
    result = asyncio.run(make_flow().submit_code("verif_abc", "123456"))
    assert result.ok is True
    assert result.session.state == VerificationState.VERIFIED
    assert result.session.verification_id == "verif_abc"


def test_wrong_code_keeps_code_sent_and_allows_retry():
    flow = make_flow()
    started = asyncio.run(flow.start("+15551234567"))
    session = started.session

    wrong = asyncio.run(flow.submit_code("verif_abc", "000000", session=session))
    assert wrong.ok is False
    assert wrong.message == "the token is invalid"
    assert wrong.verification_id == "verif_abc"
    assert wrong.restart is False
    assert session.state == VerificationState.CODE_SENT
    assert session.last_error == "the token is invalid"

    right = asyncio.run(flow.submit_code("verif_abc", "123456", session=session))
    assert right.ok is True
    assert session.state == VerificationState.VERIFIED
    assert session.last_error is None


def test_second_check_of_consumed_id_fails():
    flow = make_flow()
    assert asyncio.run(flow.submit_code("verif_abc", "123456")).ok is True
    again = asyncio.run(flow.submit_code("verif_abc", "123456"))
    assert again.ok is False
    assert again.session.state != VerificationState.VERIFIED


def test_unknown_id_fails_and_asks_for_restart():
    result = asyncio.run(make_flow().submit_code("verif_unknown", "123456"))
    assert result.ok is False
    assert result.error_kind == ProviderErrorKind.IDENTIFIER_INVALID
    assert result.restart is True
    assert result.verification_id == "verif_unknown"
    assert result.session.state == VerificationState.FAILED
    assert result.session.verification_id is None


def test_expired_id_moves_session_to_failed():
    provider = FakeProvider()
    provider.expired.add("verif_abc")
    flow = make_flow(provider)
    started = asyncio.run(flow.start("+15551234567"))
    result = asyncio.run(flow.submit_code("verif_abc", "123456", session=started.session))
    assert result.ok is False
    assert result.error_kind == ProviderErrorKind.CODE_EXPIRED
    assert result.as_dict()["restart"] is True
    assert started.session.state == VerificationState.FAILED

    # a failed session starts over on the next start()
    restarted = asyncio.run(flow.start("+15551234567", session=started.session))
    assert restarted.ok is True
    assert restarted.session is not started.session
    assert restarted.session.state == VerificationState.CODE_SENT


def test_submit_code_requires_verification_id():
    provider = FakeProvider()
    result = asyncio.run(make_flow(provider).submit_code("", "123456"))
    assert result.ok is False
    assert result.restart is True
    assert provider.checks == []


def test_submit_code_on_new_session_is_refused():
    provider = FakeProvider()
    session = VerificationSession("+15551234567")
    result = asyncio.run(make_flow(provider).submit_code("verif_abc", "123456", session=session))
    assert result.ok is False
    assert session.state == VerificationState.NEW
    assert provider.checks == []


def test_resend_replaces_verification_id_and_old_id_is_refused():
    provider = FakeProvider(verification_id="verif_1")
    flow = make_flow(provider)
    first = asyncio.run(flow.start("+15551234567"))
    provider.verification_id = "verif_2"
    second = asyncio.run(flow.start("+15551234567", session=first.session))
    assert second.session is first.session
    assert first.session.verification_id == "verif_2"

    stale = asyncio.run(flow.submit_code("verif_1", "123456", session=first.session))
    assert stale.ok is False
    assert first.session.state == VerificationState.CODE_SENT
    assert provider.checks == []


def test_verified_session_does_not_regress_on_start():
    provider = FakeProvider()
    flow = make_flow(provider)
    started = asyncio.run(flow.start("+15551234567"))
    asyncio.run(flow.submit_code("verif_abc", "123456", session=started.session))
    again = asyncio.run(flow.start("+15551234567", session=started.session))
    assert again.ok is False
    assert started.session.state == VerificationState.VERIFIED
    assert len(provider.requests) == 1


def test_provider_timeout_becomes_timeout_result():
    class SlowProvider(FakeProvider):
        def request_code(self, phone_number, options):
            time.sleep(0.3)
            return super().request_code(phone_number, options)

    flow = make_flow(SlowProvider(), timeout_seconds=0.05)
    result = asyncio.run(flow.start("+15551234567"))
    assert result.ok is False
    assert result.message == TIMEOUT_MESSAGE
    assert result.error_kind == ProviderErrorKind.TRANSPORT_FAILURE
    assert result.session.state == VerificationState.NEW


def test_unexpected_provider_exception_is_contained():
    class BrokenProvider(FakeProvider):
        def check_code(self, verification_id, code):
            raise RuntimeError("socket closed")

    flow = make_flow(BrokenProvider())
    result = asyncio.run(flow.submit_code("verif_abc", "123456"))
    assert result.ok is False
    assert result.message == UNAVAILABLE_MESSAGE
    assert result.restart is False
    assert result.session.state == VerificationState.CODE_SENT


def test_audit_entries_are_recorded():
    audit = FakeAudit()
    flow = make_flow(audit=audit)
    started = asyncio.run(flow.start("+15551234567"))
    asyncio.run(flow.submit_code("verif_abc", "000000", session=started.session))
    assert audit.entries == [
        ("verification.start", "+15551234567", "verif_abc", True),
        ("verification.check", "+15551234567", "verif_abc", False),
    ]


def test_submit_code_on_verified_session_is_refused():
    provider = FakeProvider()
    session = VerificationSession.resume("verif_abc", phone_number="+15551234567")
    session.mark_verified()
    result = asyncio.run(make_flow(provider).submit_code("verif_abc", "123456", session=session))
    assert result.ok is False
    assert result.message == "verification session is VERIFIED"
    assert result.restart is False
    assert session.state == VerificationState.VERIFIED
    assert session.verification_id == "verif_abc"
    assert provider.checks == []


def test_check_timeout_keeps_session_retryable():
    class SlowCheckProvider(FakeProvider):
        def check_code(self, verification_id, code):
            time.sleep(0.3)
            return super().check_code(verification_id, code)

    flow = make_flow(SlowCheckProvider(), timeout_seconds=0.05)
    started = asyncio.run(flow.start("+15551234567"))
    result = asyncio.run(flow.submit_code("verif_abc", "123456", session=started.session))
    assert result.as_dict() == {"ok": False, "verification_id": "verif_abc", "message": TIMEOUT_MESSAGE}
    assert result.error_kind == ProviderErrorKind.TRANSPORT_FAILURE
    assert started.session.state == VerificationState.CODE_SENT
    assert started.session.verification_id == "verif_abc"
    assert started.session.last_error == TIMEOUT_MESSAGE
