"""Error response body shared by every failing endpoint."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class ServiceInfo(BaseModel):
    name: str = Field(..., examples=["Fiscalis"])
    version: str = Field(..., examples=["0.1.0"])
    environment: str = Field(..., examples=["development", "production"])


class ErrorResponse(BaseModel):
    """Standardized error body.

    ``details`` carries sanitized error context; ``debug_info`` is only
    populated in development.
    """

    error_code: str = Field(
        ...,
        description="Unique error code identifying the error type",
        examples=["VALIDATION_ERROR", "TAX_PROFILE_MISSING", "INVALID_SIGNATURE"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Tax information not found. Please complete your tax profile."],
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details (e.g., fields that failed validation)",
        examples=[{"fields": ["cpf_cnpj", "postal_code"]}],
    )
    correlation_id: str | None = Field(
        default=None,
        description="Request correlation ID for tracing and debugging",
    )
    request_id: str | None = Field(default=None, description="Local request id")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when the error occurred (with timezone)",
    )
    severity: str | None = Field(default=None, examples=["LOW", "HIGH"])
    service_info: ServiceInfo | None = None
    debug_info: dict[str, Any] | None = Field(
        default=None,
        description="Stack trace and cause (development only)",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error_code": "TAX_PROFILE_INVALID",
                    "message": (
                        "Brazilian customers must provide CPF/CNPJ and "
                        "complete address"
                    ),
                    "details": {"fields": ["cpf_cnpj"]},
                    "correlation_id": "550e8400-e29b-41d4-a716-446655440000",
                    "request_id": "req-660e8400-e29b-41d4-a716-446655440000",
                    "timestamp": "2025-06-14T12:00:00+00:00",
                    "severity": "LOW",
                },
                {
                    "error_code": "INVALID_SIGNATURE",
                    "message": "Invalid webhook signature",
                    "timestamp": "2025-06-14T12:00:02+00:00",
                    "severity": "HIGH",
                },
            ]
        }
    }
