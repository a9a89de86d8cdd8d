"""Unit tests for the exception handlers' status mapping and redaction."""

import orjson
import pytest
from starlette.requests import Request

from src.api.constants import EXTERNAL_SERVICE_PUBLIC_MESSAGE, INTERNAL_ERROR_MESSAGE
from src.api.middleware.error_handler import (
    fiscalis_error_handler,
    generic_exception_handler,
    status_code_for,
)
from src.core.context import RequestContext
from src.core.exceptions import (
    BusinessRuleError,
    FiscalApiError,
    FiscalisError,
    NotFoundError,
    TaxProfileInvalidError,
    TaxProfileMissingError,
    UnauthorizedError,
    ValidationError,
    WebhookSignatureError,
)

PROVIDER_MESSAGE = "Failed to create NFS-e: CNAE inválido"


def make_request(path: str = "/api/v1/fiscal/webhook") -> Request:
    return Request({"type": "http", "method": "POST", "path": path, "headers": []})


@pytest.mark.unit
@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ValidationError("x"), 400),
        (TaxProfileInvalidError("x", fields=["state"]), 400),
        (UnauthorizedError("x"), 401),
        (WebhookSignatureError("signature mismatch"), 401),
        (NotFoundError("x"), 404),
        (BusinessRuleError("x"), 422),
        (TaxProfileMissingError("u1"), 422),
        (FiscalApiError("Failed to create NFS-e: rejected"), 502),
        (FiscalisError("CUSTOM", "x"), 500),
    ],
)
def test_status_code_for(error: FiscalisError, expected: int) -> None:
    assert status_code_for(error) == expected


@pytest.mark.unit
class TestFiscalisErrorHandler:
    async def test_body_carries_code_context_and_request_id(self) -> None:
        RequestContext.set_correlation_id("corr-1")
        RequestContext.set_request_id("req-1")
        error = TaxProfileInvalidError("Invalid value for: state", fields=["state"])

        response = await fiscalis_error_handler(make_request(), error)

        body = orjson.loads(response.body)
        assert response.status_code == 400
        assert body["error_code"] == "TAX_PROFILE_INVALID"
        assert body["details"] == {"fields": ["state"]}
        assert body["correlation_id"] == "corr-1"
        assert body["request_id"] == "req-1"

    async def test_signature_failure_reveals_nothing(self) -> None:
        response = await fiscalis_error_handler(
            make_request(), WebhookSignatureError("signature mismatch")
        )

        body = orjson.loads(response.body)
        assert response.status_code == 401
        assert "details" not in body
        assert "mismatch" not in body["message"]

    async def test_provider_message_shown_outside_production(self) -> None:
        error = FiscalApiError(PROVIDER_MESSAGE, status_code=400)

        response = await fiscalis_error_handler(make_request(), error)

        body = orjson.loads(response.body)
        assert response.status_code == 502
        assert body["message"] == PROVIDER_MESSAGE
        assert body["debug_info"]["exception_type"] == "FiscalApiError"

    async def test_provider_message_hidden_in_production(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ENVIRONMENT", "production")
        error = FiscalApiError(PROVIDER_MESSAGE, status_code=400)

        response = await fiscalis_error_handler(make_request(), error)

        body = orjson.loads(response.body)
        assert body["message"] == EXTERNAL_SERVICE_PUBLIC_MESSAGE
        assert "details" not in body
        assert "debug_info" not in body

    async def test_rejects_foreign_exceptions(self) -> None:
        with pytest.raises(TypeError, match="Expected FiscalisError"):
            await fiscalis_error_handler(make_request(), ValueError("x"))


@pytest.mark.unit
class TestGenericExceptionHandler:
    async def test_development_includes_error_text(self) -> None:
        response = await generic_exception_handler(
            make_request(), RuntimeError("pool exhausted")
        )

        body = orjson.loads(response.body)
        assert response.status_code == 500
        assert body["error_code"] == "INTERNAL_ERROR"
        assert body["details"] == {"error": "pool exhausted", "type": "RuntimeError"}
        assert body["request_id"].startswith("req-")

    async def test_production_hides_internals(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ENVIRONMENT", "production")

        response = await generic_exception_handler(
            make_request(), RuntimeError("pool exhausted")
        )

        body = orjson.loads(response.body)
        assert body["message"] == INTERNAL_ERROR_MESSAGE
        assert "pool exhausted" not in response.body.decode()
