import pytest
from pydantic import ValidationError

from phone_verify.schemas import CheckVerificationRequest, StartVerificationRequest


def test_start_request_strips_phone_number():
    assert StartVerificationRequest(phone_number="  +15551234567 ").phone_number == "+15551234567"


def test_check_request_strips_code_and_requires_id():
    assert CheckVerificationRequest(verification_id="verif_abc", code=" 123456\n").code == "123456"
    with pytest.raises(ValidationError):
        CheckVerificationRequest(verification_id="", code="123456")

