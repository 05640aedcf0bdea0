from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail), exc.status_code)
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Wrap request validation failures in the standard error envelope"""
    content = create_error_response("Invalid request", 422)
    content["data"] = {
        "details": [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]
    }
    return JSONResponse(status_code=422, content=content)
