"""
Error taxonomy for the CRM API.

Every expected failure is raised as a CRMError subclass and rendered by
`crm_exception_handler` as `{"error": ..., "code": ...}` with the status code
carried by the exception. Anything else falls through to
`unhandled_exception_handler`, which logs the traceback and returns a
generic 500.
"""
import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CRMError(Exception):
    """Base class for errors that map onto an HTTP response."""

    def __init__(
        self,
        message: str,
        code: str = "CRM_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.message,
            "code": self.code,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(CRMError):
    """Bad input shape, size/type violation or missing/conflicting parent."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=details,
        )


class NotFoundError(CRMError):
    """Raised when an attachment or its declared parent does not exist."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=404,
            details=details,
        )


class StorageError(CRMError):
    """
    Raised when a storage backend cannot produce or accept a payload.

    The message given here is logged; clients only see a generic one.
    """

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="STORAGE_ERROR",
            status_code=500,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"error": "Attachment storage failure", "code": self.code}


async def crm_exception_handler(request: Request, exc: CRMError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report malformed request bodies/params as 400 like the rest of the taxonomy."""
    errors = [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in exc.errors()
    ]
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={
            "error": message,
            "code": "VALIDATION_ERROR",
            "details": {"errors": errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
        },
    )
