import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    """Base for every failure the service reports to a caller.

    ``code`` is the machine-readable kind, ``details`` optional structured
    context. Details never carry password hashes or internal store keys.
    """

    status_code = 500
    code = "SERVER_ERROR"
    default_message = "Something went wrong. Please try again"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(status_code=self.status_code, detail=self.message, headers=headers)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid request data"


class AuthError(AppError):
    status_code = 401
    code = "AUTH_ERROR"
    default_message = "You are not authorized"


class InvalidCodeError(AuthError):
    code = "INVALID_OTP"
    default_message = "Invalid OTP"

    def __init__(self, remaining_attempts: int, message: Optional[str] = None):
        self.remaining_attempts = remaining_attempts
        super().__init__(
            message or f"Invalid OTP. {remaining_attempts} attempts remaining",
            details={"remainingAttempts": remaining_attempts},
        )


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Identity already exists"


class RateLimitError(AppError):
    """One of the OTP gates is closed: ``cooldown``, ``spam`` or ``locked``."""

    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests. Please try again later"

    def __init__(self, reason: str, retry_after: int, message: Optional[str] = None):
        self.reason = reason
        self.retry_after = max(int(retry_after), 0)
        super().__init__(
            message,
            details={"reason": reason, "retryAfter": self.retry_after},
            headers={"Retry-After": str(self.retry_after)},
        )


class ServerError(AppError):
    status_code = 500
    code = "SERVER_ERROR"


class DeliveryFailedError(AppError):
    status_code = 502
    code = "DELIVERY_FAILED"
    default_message = "Could not deliver the verification code. Please try again shortly"


def create_error_response(message: str, code: str, details: Optional[Dict[str, Any]] = None) -> dict:
    """Create a standardized error response"""
    body = {
        "success": False,
        "message": message,
        "code": code,
    }
    if details:
        body["details"] = details
    return body


def create_success_response(message: str, data: Optional[Any] = None) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "message": message,
        "data": data,
    }


async def app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.info(f"[{request.method}] {request.url.path} -> {exc.code} ({exc.status_code})")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.code, exc.details),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException raised outside the core"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=ValidationError.status_code,
        content=create_error_response("Invalid request data", ValidationError.code, {"errors": errors}),
    )
