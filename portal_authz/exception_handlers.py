"""
Exception handlers that render every failure in one envelope:

    {"error": {"status_code": 401,
               "error_code": "UNAUTHENTICATED",
               "message": "The function must be called while authenticated.",
               "type": "Unauthorized",
               "path": "/api/v1/permissions/check"}}

``details`` is added only when there is something to report, e.g. the
field errors of a rejected request body.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal_authz.exceptions import ErrorCode, PortalError

logger = logging.getLogger(__name__)

ERROR_TYPES = {
    status.HTTP_400_BAD_REQUEST: "Bad Request",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "Not Found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method Not Allowed",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "Validation Error",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal Server Error",
}

# Error codes for exceptions raised by FastAPI/Starlette themselves
HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.VALIDATION_FAILED,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHENTICATED,
    status.HTTP_403_FORBIDDEN: ErrorCode.PERMISSION_DENIED,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorCode.VALIDATION_FAILED,
    status.HTTP_500_INTERNAL_SERVER_ERROR: ErrorCode.INTERNAL_ERROR,
}


def get_error_type(status_code: int) -> str:
    return ERROR_TYPES.get(status_code, "Error")


def get_http_error_code(status_code: int) -> str:
    return HTTP_ERROR_CODES.get(status_code, ErrorCode.UNKNOWN_ERROR).value


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "status_code": status_code,
        "message": message,
        "type": get_error_type(status_code),
    }
    if error_code:
        body["error_code"] = ErrorCode(error_code).value
    if details:
        body["details"] = details
    if path:
        body["path"] = path
    return JSONResponse(status_code=status_code, content={"error": body})


async def portal_exception_handler(request: Request, exc: PortalError) -> JSONResponse:
    # Expected outcomes of a permission operation, not server faults
    logger.warning(
        f"{exc.error_code.value} on {request.url.path}: {exc.message}",
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value, "path": request.url.path},
    )
    return create_error_response(exc.status_code, exc.message, exc.error_code, exc.details, request.url.path)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes and wrong methods."""
    return create_error_response(
        exc.status_code,
        str(exc.detail),
        get_http_error_code(exc.status_code),
        path=request.url.path,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    validation_errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.info(f"Rejected request body on {request.url.path}: {len(validation_errors)} error(s)")
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        ErrorCode.VALIDATION_FAILED,
        {"validation_errors": validation_errors},
        request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PortalError, portal_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
