from fastapi import APIRouter, Depends
import logging

from ..application.services.verification_flow import VerificationFlow
from ..dependencies import get_verification_flow, provider_status
from ..schemas import (
    StartVerificationRequest, StartVerificationResponse,
    CheckVerificationRequest, CheckVerificationResponse,
    ProviderHealthResponse, ErrorResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verify", tags=["Verification"], responses={422: {"model": ErrorResponse}})


@router.post("/start", response_model=StartVerificationResponse)
async def start_verification(payload: StartVerificationRequest, flow: VerificationFlow = Depends(get_verification_flow)):
    """
    Send a verification code to the phone number.

    A rejected number is reported with ``ok: false`` and the provider's
    message so the client can show the phone number form again.
    """
    result = await flow.start(payload.phone_number)
    return StartVerificationResponse(**result.as_dict())


@router.post("/check", response_model=CheckVerificationResponse)
async def check_verification(payload: CheckVerificationRequest, flow: VerificationFlow = Depends(get_verification_flow)):
    """
    Check the code the user received.

    On failure the verification id is echoed back for a retry; ``restart``
    means the id is no longer usable and the client must call /verify/start.
    """
    result = await flow.submit_code(payload.verification_id, payload.code)
    return CheckVerificationResponse(**result.as_dict())


@router.get("/health", response_model=ProviderHealthResponse)
def verification_health(status: dict = Depends(provider_status)):
    return ProviderHealthResponse(**status)
