"""Exception hierarchy shared by the domain, infrastructure and API layers.

Every error raised on purpose by Fiscalis derives from ``FiscalisError``, which
carries a stable ``error_code``, a ``Severity`` used for log levels and
alerting, structured context, and a fingerprint for grouping occurrences.

Layers map to HTTP as follows (see ``src.api.middleware.error_handler``):

- ``ValidationError`` / ``TaxProfileInvalidError``: 400
- ``UnauthorizedError`` / ``WebhookSignatureError``: 401
- ``NotFoundError``: 404
- ``BusinessRuleError`` / ``TaxProfileMissingError``: 422
- ``ExternalServiceError`` / ``FiscalApiError``: 502
"""

import hashlib
import traceback
from enum import Enum

from src.core.types import ErrorContext


class ErrorCode(Enum):
    """Stable, client-facing error identifiers."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the system."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Input validation failed due to invalid or malformed data."""

    NOT_FOUND = "NOT_FOUND"
    """The requested resource could not be found."""

    UNAUTHORIZED = "UNAUTHORIZED"
    """Authentication failed or user is not authorized for this action."""

    TAX_PROFILE_MISSING = "TAX_PROFILE_MISSING"
    """The user has no tax profile, so no invoice can be issued."""

    TAX_PROFILE_INVALID = "TAX_PROFILE_INVALID"
    """The tax profile lacks fields required for its jurisdiction."""

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """A downstream service failed or rejected the request."""

    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    """An inbound webhook could not be authenticated."""


class Severity(Enum):
    """Impact classification used for log levels and alerting."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class FiscalisError(Exception):
    """Base exception class for all Fiscalis exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        self.stack_trace = traceback.format_stack()[:-1]
        self.fingerprint = self._generate_fingerprint()

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def _generate_fingerprint(self) -> str:
        """Hash the error type with the innermost project frames it was raised from."""
        max_frames = 5
        fingerprint_data = f"{self.__class__.__name__}:{self.error_code}"
        for frame in self.stack_trace[-max_frames:]:
            if "site-packages" not in frame and "src/" in frame:
                fingerprint_data += f":{frame.strip().splitlines()[0]}"
        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[:16]

    @property
    def is_expected(self) -> bool:
        """True for LOW and MEDIUM severities, which are part of normal operation."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    @property
    def should_alert(self) -> bool:
        """True for HIGH and CRITICAL severities."""
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class ValidationError(FiscalisError):
    """Input or data does not meet the expected format or rules."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.VALIDATION_ERROR,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class NotFoundError(FiscalisError):
    """A requested resource does not exist or is not visible to the caller."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.NOT_FOUND,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class UnauthorizedError(FiscalisError):
    """Authentication failed or the caller lacks permission."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.UNAUTHORIZED,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.HIGH, context, cause)


class BusinessRuleError(FiscalisError):
    """An operation violates a business constraint."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.INTERNAL_ERROR,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.MEDIUM, context, cause)


class TaxProfileMissingError(BusinessRuleError):
    """Invoice issuance was requested for a user with no tax profile."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            "Tax information not found. Please complete your tax profile.",
            error_code=ErrorCode.TAX_PROFILE_MISSING,
            context={"user_id": user_id},
        )


class TaxProfileInvalidError(ValidationError):
    """A tax profile is missing fields required for its jurisdiction.

    ``fields`` lists the profile attributes that failed validation, in the
    order they were checked.
    """

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        self.fields = fields or []
        super().__init__(
            message,
            error_code=ErrorCode.TAX_PROFILE_INVALID,
            context={"fields": self.fields} if self.fields else None,
        )


class ExternalServiceError(FiscalisError):
    """A downstream HTTP service failed, timed out or rejected a request.

    ``service`` names the dependency; ``status_code`` is the upstream HTTP
    status when one was received. The message may contain provider text and is
    only exposed to clients outside production.
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        context: ErrorContext = {"service": service}
        if status_code is not None:
            context["upstream_status"] = status_code
        super().__init__(
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            message,
            Severity.HIGH,
            context,
            cause,
        )


class FiscalApiError(ExternalServiceError):
    """The tax API rejected a request; ``message`` is the provider's own text."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__("fiscal_api", message, status_code, cause)


class WebhookSignatureError(UnauthorizedError):
    """Inbound webhook signature is missing, unverifiable or wrong.

    The client-facing message is always the same so callers cannot tell which
    check failed; ``reason`` is kept for logs only.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            "Invalid webhook signature",
            error_code=ErrorCode.INVALID_SIGNATURE,
        )
