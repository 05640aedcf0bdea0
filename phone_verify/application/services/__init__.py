# Services package (re-export for stable imports)
from .verification_flow import VerificationFlow, StartResult, VerifyResult

__all__ = [
    "VerificationFlow",
    "StartResult",
    "VerifyResult",
]
