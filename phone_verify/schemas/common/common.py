# phone_verify/schemas/common.py
from pydantic import BaseModel
from typing import Optional


class ErrorResponse(BaseModel):
    success: bool = False
    data: Optional[dict] = None
    error: str
