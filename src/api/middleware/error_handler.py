"""Global exception handlers mapping failures to ``ErrorResponse`` bodies.

Status codes:

- ``ValidationError``: 400
- ``UnauthorizedError``: 401 (webhook signature failures never say why)
- ``NotFoundError``: 404
- ``BusinessRuleError``: 422
- ``ExternalServiceError``: 502 (provider text hidden in production)
- anything else: 500
"""

import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException

from src.api.constants import EXTERNAL_SERVICE_PUBLIC_MESSAGE, INTERNAL_ERROR_MESSAGE
from src.api.schemas.errors import ErrorResponse, ServiceInfo
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.context import RequestContext, generate_request_id
from src.core.error_context import sanitize_dict, sanitize_error_context
from src.core.exceptions import (
    BusinessRuleError,
    ErrorCode,
    ExternalServiceError,
    FiscalisError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

_STATUS_BY_TYPE: tuple[tuple[type[FiscalisError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (BusinessRuleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
)


def get_service_info(settings: Settings) -> ServiceInfo:
    return ServiceInfo(
        name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )


def status_code_for(exc: FiscalisError) -> int:
    for exc_type, status_code in _STATUS_BY_TYPE:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_response(
    status_code: int, error_response: ErrorResponse
) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def fiscalis_error_handler(request: Request, exc: Exception) -> Response:
    """Handle ``FiscalisError`` and its subclasses.

    Raises:
        TypeError: If exc is not a FiscalisError instance
    """
    if not isinstance(exc, FiscalisError):
        raise TypeError(f"Expected FiscalisError, got {type(exc).__name__}")

    settings = get_settings()
    correlation_id = RequestContext.get_correlation_id()
    status_code = status_code_for(exc)

    error_context = sanitize_error_context(
        exc,
        {
            "request_method": request.method,
            "request_path": str(request.url.path),
            "error_code": exc.error_code,
            "status_code": status_code,
        },
    )
    log = logger.error if exc.should_alert else logger.warning
    log(
        "Handling {exception_type}: {message}",
        exception_type=type(exc).__name__,
        message=exc.message,
        **error_context,
    )

    message = exc.message
    details: dict[str, Any] | None = sanitize_dict(exc.context) if exc.context else None
    if isinstance(exc, UnauthorizedError):
        details = None
    elif isinstance(exc, ExternalServiceError) and settings.is_production:
        message = EXTERNAL_SERVICE_PUBLIC_MESSAGE
        details = None

    debug_info = None
    if settings.environment == "development":
        debug_info = {
            "stack_trace": exc.stack_trace,
            "exception_type": type(exc).__name__,
        }
        if exc.cause:
            debug_info["cause"] = {
                "type": type(exc.cause).__name__,
                "message": str(exc.cause),
            }

    return _error_response(
        status_code,
        ErrorResponse(
            error_code=exc.error_code,
            message=message,
            details=details,
            correlation_id=correlation_id,
            request_id=RequestContext.get_request_id() or generate_request_id(),
            severity=exc.severity.value,
            service_info=get_service_info(settings),
            debug_info=debug_info,
        ),
    )


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Handle FastAPI request validation failures with per-field messages."""
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field_path = error.get("loc", ())
        field_name = ".".join(str(loc) for loc in field_path[1:]) or "root"
        field_errors.setdefault(field_name, []).append(error.get("msg", "Invalid"))

    logger.warning(
        "Request validation failed",
        path=str(request.url.path),
        method=request.method,
        validation_errors=field_errors,
    )

    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorResponse(
            error_code=ErrorCode.VALIDATION_ERROR.value,
            message="Request validation failed",
            details={"validation_errors": field_errors},
            correlation_id=RequestContext.get_correlation_id(),
            request_id=RequestContext.get_request_id() or generate_request_id(),
            severity="LOW",
            service_info=get_service_info(get_settings()),
        ),
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Convert Starlette ``HTTPException`` (404 routes, 405s) to ``ErrorResponse``."""
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    error_code = ErrorCode.INTERNAL_ERROR.value
    severity = "MEDIUM"
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        error_code = ErrorCode.UNAUTHORIZED.value
        severity = "HIGH"
    elif exc.status_code == status.HTTP_404_NOT_FOUND:
        error_code = ErrorCode.NOT_FOUND.value
        severity = "LOW"
    elif exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
        error_code = ErrorCode.VALIDATION_ERROR.value
        severity = "LOW"

    logger.warning(
        "HTTP exception",
        status=exc.status_code,
        method=request.method,
        path=str(request.url.path),
        detail=exc.detail,
    )

    response = _error_response(
        exc.status_code,
        ErrorResponse(
            error_code=error_code,
            message=str(exc.detail),
            correlation_id=RequestContext.get_correlation_id(),
            request_id=RequestContext.get_request_id() or generate_request_id(),
            severity=severity,
            service_info=get_service_info(get_settings()),
        ),
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Catch-all returning 500; internals are hidden in production."""
    settings = get_settings()

    error_context = sanitize_error_context(
        exc,
        {
            "request_method": request.method,
            "request_path": str(request.url.path),
        },
    )
    logger.opt(exception=exc).error(
        "Unhandled exception: {exception_type}",
        exception_type=type(exc).__name__,
        **error_context,
    )

    if settings.is_production:
        message = INTERNAL_ERROR_MESSAGE
        details = None
        debug_info = None
    else:
        message = f"Internal server error: {type(exc).__name__}"
        details = {"error": str(exc), "type": type(exc).__name__}
        debug_info = {
            "stack_trace": traceback.format_tb(exc.__traceback__),
            "exception_type": type(exc).__name__,
        }

    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(
            error_code=ErrorCode.INTERNAL_ERROR.value,
            message=message,
            details=details,
            correlation_id=RequestContext.get_correlation_id(),
            request_id=RequestContext.get_request_id() or generate_request_id(),
            severity="CRITICAL",
            service_info=get_service_info(settings),
            debug_info=debug_info,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FiscalisError, fiscalis_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
