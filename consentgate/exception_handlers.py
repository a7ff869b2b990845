"""
Exception handlers for consentgate

Every error leaves the API in one envelope, whether it was raised by our own
code, by FastAPI request validation or by the database layer:

{
    "error": {
        "status_code": 400,
        "error_code": "VALIDATION_INVALID_ACTION",
        "message": "Action type 'revoke' is not allowed",
        "type": "Bad Request",
        "details": {"action_type": "revoke", "allowed": [...]},
        "path": "/api/v1/consent"
    }
}

The consent bridge only looks at ``error_code``; ``message`` is for humans.
"""

import logging
from typing import Any, Union

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from consentgate.exceptions import ConsentGateError, DatabaseError, ErrorCode

logger = logging.getLogger(__name__)

# status -> (human readable type, error code used for plain HTTPExceptions)
STATUS_TABLE: dict[int, tuple[str, ErrorCode]] = {
    400: ("Bad Request", ErrorCode.VALIDATION_FAILED),
    401: ("Unauthorized", ErrorCode.AUTH_FAILED),
    403: ("Forbidden", ErrorCode.AUTH_PERMISSION_DENIED),
    404: ("Not Found", ErrorCode.RESOURCE_NOT_FOUND),
    405: ("Method Not Allowed", ErrorCode.VALIDATION_FAILED),
    422: ("Validation Error", ErrorCode.VALIDATION_FAILED),
    429: ("Too Many Requests", ErrorCode.RATE_LIMIT_EXCEEDED),
    500: ("Internal Server Error", ErrorCode.INTERNAL_ERROR),
    503: ("Service Unavailable", ErrorCode.SERVICE_UNAVAILABLE),
}


def get_error_type(status_code: int) -> str:
    return STATUS_TABLE.get(status_code, ("Error", ErrorCode.UNKNOWN_ERROR))[0]


def get_http_error_code(status_code: int) -> str:
    return STATUS_TABLE.get(status_code, ("Error", ErrorCode.UNKNOWN_ERROR))[1].value


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    """
    Build the error envelope.

    Also used directly by middleware, where raised exceptions never reach
    the app's handlers. Empty ``error_code``, ``details`` and ``path`` are
    left out.
    """
    error: dict[str, Any] = {
        "status_code": status_code,
        "message": message,
        "type": get_error_type(status_code),
    }
    if error_code:
        error["error_code"] = error_code.value if isinstance(error_code, ErrorCode) else error_code
    if details:
        error["details"] = details
    if path:
        error["path"] = path

    return JSONResponse(status_code=status_code, content={"error": error})


def error_response_for(exc: ConsentGateError, path: str | None = None) -> JSONResponse:
    """Envelope for one of our own exceptions."""
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details or None,
        path=path,
    )


async def consentgate_exception_handler(request: Request, exc: ConsentGateError) -> JSONResponse:
    # Client mistakes are routine on a public endpoint; only 5xx is an error
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{exc.__class__.__name__}: {exc.message}",
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value, "path": request.url.path},
    )
    return error_response_for(exc, request.url.path)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(f"HTTPException {exc.status_code}: {exc.detail}", extra={"path": request.url.path})

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=get_http_error_code(exc.status_code),
        path=request.url.path,
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """
    Report every invalid field at once.

    Field paths drop the leading ``body`` segment FastAPI adds, so
    ``["body", "action_type"]`` is reported as ``action_type``.
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}", extra={"errors": errors})

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code=ErrorCode.VALIDATION_FAILED,
        details={"validation_errors": errors},
        path=request.url.path,
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Database failures that escaped the service layer; the driver message stays in the log."""
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)
    return error_response_for(DatabaseError(operation=f"{request.method} {request.url.path}"), request.url.path)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app) -> None:
    """Install every handler above on a FastAPI app."""
    handlers = (
        (ConsentGateError, consentgate_exception_handler),
        (StarletteHTTPException, http_exception_handler),
        (RequestValidationError, validation_exception_handler),
        (PydanticValidationError, validation_exception_handler),
        (SQLAlchemyError, database_exception_handler),
        (Exception, unhandled_exception_handler),
    )
    for exc_class, handler in handlers:
        app.add_exception_handler(exc_class, handler)

    logger.debug(f"Registered {len(handlers)} exception handlers")
