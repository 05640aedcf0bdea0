# phone_verify/schemas/verification.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class StartVerificationRequest(BaseModel):
    phone_number: str = Field(..., min_length=1, description="Phone number in international format, e.g. +15551234567")

    @field_validator('phone_number')
    @classmethod
    def strip_phone(cls, v: str) -> str:
        # format checks are left to the verification provider
        return v.strip()


class StartVerificationResponse(BaseModel):
    ok: bool
    verification_id: Optional[str] = None
    message: Optional[str] = None


class CheckVerificationRequest(BaseModel):
    verification_id: str = Field(..., min_length=1, description="Identifier returned by /verify/start")
    code: str = Field(..., description="Code received by SMS")

    @field_validator('code')
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()


class CheckVerificationResponse(BaseModel):
    ok: bool
    verification_id: Optional[str] = None
    message: Optional[str] = None
    restart: bool = False


class ProviderHealthResponse(BaseModel):
    provider: str
    configured: bool
