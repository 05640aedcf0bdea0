import logging
from typing import Any, Dict, Optional

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ...application.ports.verification_provider import (
    ProviderError,
    ProviderErrorKind,
    ProviderNotConfiguredError,
    VerificationOptions,
    VerificationProvider,
)
from ...core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# Twilio Verify error codes that make a verification permanently unusable
MAX_CHECK_ATTEMPTS_REACHED = 60202
NO_PENDING_VERIFICATION = 60023

APPROVED = "approved"


def _is_transport_status(status: Optional[int]) -> bool:
    return status is None or status == 429 or status >= 500


# wrong credentials or service SID; not something the user can fix
CONFIGURATION_STATUSES = (401, 403, 404)


class TwilioVerificationProvider(VerificationProvider):
    """Twilio Verify adapter.

    Twilio renders the SMS body from the Verify service's own templates, so
    ``options.template`` is not sent; ``TWILIO_VERIFY_TEMPLATE_SID`` selects a
    service template when set. Checks are made by verification SID.
    """

    def __init__(self, client: Optional[Client] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.verify_sid = self.settings.TWILIO_VERIFY_SERVICE_SID
        self.template_sid = self.settings.TWILIO_VERIFY_TEMPLATE_SID or None
        # the SDK must give up before the flow reports a timeout
        self.http_timeout = min(self.settings.TWILIO_HTTP_TIMEOUT, self.settings.PROVIDER_TIMEOUT_SECONDS)
        self.client = client or self._build_client()

    def _build_client(self) -> Optional[Client]:
        if not (self.settings.TWILIO_ACCOUNT_SID and self.settings.TWILIO_AUTH_TOKEN):
            logger.warning("Twilio credentials not configured; verification requests will fail")
            return None
        http_client = TwilioHttpClient(
            timeout=self.http_timeout,
            max_retries=self.settings.TWILIO_HTTP_MAX_RETRIES,
        )
        client = Client(self.settings.TWILIO_ACCOUNT_SID, self.settings.TWILIO_AUTH_TOKEN, http_client=http_client)
        logger.info("Twilio client initialized successfully")
        return client

    @property
    def is_configured(self) -> bool:
        return self.client is not None and bool(self.verify_sid)

    def _service(self):
        if not self.is_configured:
            raise ProviderNotConfiguredError("Twilio Verify Service SID not configured")
        return self.client.verify.v2.services(self.verify_sid)

    def request_code(self, phone_number: str, options: VerificationOptions) -> str:
        params: Dict[str, Any] = {"to": phone_number, "channel": "sms"}
        if self.template_sid:
            params["template_sid"] = self.template_sid
        service = self._service()
        try:
            verification = service.verifications.create(**params)
        except TwilioRestException as e:
            if _is_transport_status(e.status) or e.status in CONFIGURATION_STATUSES:
                logger.error(f"Twilio Verify request failed: {e.status} {e.code} {e.msg}")
                kind = ProviderErrorKind.TRANSPORT_FAILURE
            else:
                kind = ProviderErrorKind.INPUT_REJECTED
            raise ProviderError(kind, e.msg, code=str(e.code)) from e
        except (TwilioException, requests.exceptions.RequestException) as e:
            logger.error(f"Twilio error: {e}")
            raise ProviderError(ProviderErrorKind.TRANSPORT_FAILURE, "verification provider unavailable", code="transport") from e
        logger.info(f"Twilio verification sent, SID: {verification.sid}")
        return verification.sid

    def check_code(self, verification_id: str, code: str) -> None:
        service = self._service()
        try:
            check = service.verification_checks.create(verification_sid=verification_id, code=code)
        except TwilioRestException as e:
            raise ProviderError(self._classify_check_error(e), e.msg, code=str(e.code)) from e
        except (TwilioException, requests.exceptions.RequestException) as e:
            logger.error(f"Twilio verification error: {e}")
            raise ProviderError(ProviderErrorKind.TRANSPORT_FAILURE, "verification provider unavailable", code="transport") from e

        logger.info(f"Twilio verification check for {verification_id}: {check.status}")
        if check.status != APPROVED:
            raise ProviderError(ProviderErrorKind.CODE_REJECTED, "Invalid verification code", code=check.status)

    @staticmethod
    def _classify_check_error(e: TwilioRestException) -> ProviderErrorKind:
        if e.code in (MAX_CHECK_ATTEMPTS_REACHED, NO_PENDING_VERIFICATION):
            return ProviderErrorKind.CODE_EXPIRED
        if e.status == 404:
            # Twilio deletes verifications once approved, expired or canceled
            return ProviderErrorKind.IDENTIFIER_INVALID
        if _is_transport_status(e.status):
            return ProviderErrorKind.TRANSPORT_FAILURE
        return ProviderErrorKind.CODE_REJECTED
