"""Unit tests for log and response redaction helpers."""

import pytest

from src.core.constants import REDACTED
from src.core.error_context import (
    is_sensitive_field,
    mask_document,
    sanitize_dict,
    sanitize_error_context,
    sanitize_headers,
    sanitize_value,
)
from src.core.exceptions import ExternalServiceError


@pytest.mark.unit
class TestSensitiveFields:
    @pytest.mark.parametrize(
        "field",
        ["password", "api_key", "Authorization", "cpf_cnpj", "nif", "webhook_secret"],
    )
    def test_builtin_patterns(self, field: str) -> None:
        assert is_sensitive_field(field)

    @pytest.mark.parametrize("field", ["reference", "status", "full_name"])
    def test_regular_fields(self, field: str) -> None:
        assert not is_sensitive_field(field)

    def test_configured_fields_are_added(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_CONFIG__SENSITIVE_FIELDS", '["postal_code"]')
        assert is_sensitive_field("postal_code")


@pytest.mark.unit
class TestSanitize:
    def test_nested_values_are_redacted(self) -> None:
        data = {
            "reference": "R1",
            "tomador": {"cpf_cnpj": "52998224725", "name": "Maria"},
            "items": [{"token": "t"}],
        }

        assert sanitize_dict(data) == {
            "reference": "R1",
            "tomador": {"cpf_cnpj": REDACTED, "name": "Maria"},
            "items": [{"token": REDACTED}],
        }

    def test_deep_nesting_is_cut_off(self) -> None:
        value: dict[str, object] = {"leaf": 1}
        for _ in range(12):
            value = {"level": value}

        assert REDACTED in repr(sanitize_value(value))

    def test_headers_are_redacted_by_name(self) -> None:
        headers = {
            "Authorization": "Bearer x",
            "X-Fiscal-Signature": "abc",
            "Content-Type": "application/json",
        }

        assert sanitize_headers(headers) == {
            "Authorization": REDACTED,
            "X-Fiscal-Signature": REDACTED,
            "Content-Type": "application/json",
        }

    def test_error_context_includes_public_attributes(self) -> None:
        error = ExternalServiceError("ptax", "down", status_code=503)

        context = sanitize_error_context(error, {"api_key": "k", "day": "2025-06-04"})

        assert context["error_type"] == "ExternalServiceError"
        assert context["api_key"] == REDACTED
        assert context["day"] == "2025-06-04"
        assert context["error_attributes"]["service"] == "ptax"
        assert "stack_trace" not in context["error_attributes"]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("document", "expected"),
    [
        ("52998224725", "*******4725"),
        ("123", "***"),
        (None, None),
        ("", ""),
    ],
)
def test_mask_document(document: str | None, expected: str | None) -> None:
    assert mask_document(document) == expected
