# phone_verify/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import field_validator
from pydantic_settings import SettingsConfigDict
from typing import List
from functools import lru_cache

# Placeholder the provider replaces with the generated code
CODE_PLACEHOLDER = "%token"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    APP_NAME: str = "Phone Verification API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # CORS Settings
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Verification Settings
    VERIFY_PROVIDER: str = os.environ.get("VERIFY_PROVIDER", "twilio")  # "twilio" or "memory"
    VERIFY_MESSAGE_TEMPLATE: str = f"Your verification code is {CODE_PLACEHOLDER}."
    PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # Twilio Settings
    TWILIO_ACCOUNT_SID: str = os.environ.get("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.environ.get("TWILIO_AUTH_TOKEN", "")
    TWILIO_VERIFY_SERVICE_SID: str = os.environ.get("TWILIO_VERIFY_SERVICE_SID", "")
    TWILIO_VERIFY_TEMPLATE_SID: str = os.environ.get("TWILIO_VERIFY_TEMPLATE_SID", "")
    TWILIO_HTTP_TIMEOUT: float = 8.0  # capped at PROVIDER_TIMEOUT_SECONDS
    TWILIO_HTTP_MAX_RETRIES: int = 0

    # In-memory provider (local development)
    MEMORY_CODE_LENGTH: int = 6
    MEMORY_CODE_TTL_SECONDS: int = 600
    MEMORY_MAX_CHECK_ATTEMPTS: int = 5

    @field_validator("VERIFY_PROVIDER")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("twilio", "memory"):
            raise ValueError('VERIFY_PROVIDER must be either "twilio" or "memory"')
        return v

    @field_validator("VERIFY_MESSAGE_TEMPLATE")
    @classmethod
    def validate_template(cls, v: str) -> str:
        if v.count(CODE_PLACEHOLDER) != 1:
            raise ValueError(f"VERIFY_MESSAGE_TEMPLATE must contain exactly one {CODE_PLACEHOLDER} placeholder")
        return v

    # Helper methods for list envs
    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def twilio_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_VERIFY_SERVICE_SID)


@lru_cache()
def get_settings() -> Settings:
    s = Settings()
    # Normalize ALLOWED_ORIGINS if provided as comma-separated string env var CORS_ORIGINS
    cors_env = os.environ.get("CORS_ORIGINS")
    if cors_env:
        s.ALLOWED_ORIGINS = cors_env
    return s

settings: Settings = get_settings()
