"""Unit tests for the orjson response class."""

from decimal import Decimal

import orjson
import pytest
from pydantic import BaseModel

from src.api.utils.responses import ORJSONResponse


class Quote(BaseModel):
    currency: str
    rate: Decimal


@pytest.mark.unit
class TestORJSONResponse:
    def test_decimals_keep_their_scale(self) -> None:
        response = ORJSONResponse(
            {"value_brl": Decimal("297.00"), "exchange_rate": Decimal("5.400000")}
        )

        assert orjson.loads(response.body) == {
            "exchange_rate": "5.400000",
            "value_brl": "297.00",
        }

    def test_models_are_rendered(self) -> None:
        response = ORJSONResponse(Quote(currency="USD", rate=Decimal("5.4")))

        assert orjson.loads(response.body) == {"currency": "USD", "rate": "5.4"}

    def test_nested_models_are_rendered(self) -> None:
        response = ORJSONResponse({"quotes": [Quote(currency="EUR", rate=Decimal(6))]})

        assert orjson.loads(response.body) == {
            "quotes": [{"currency": "EUR", "rate": "6"}]
        }

    def test_keys_are_sorted(self) -> None:
        assert ORJSONResponse({"b": 1, "a": 2}).body == b'{"a":2,"b":1}'

    def test_unknown_types_are_refused(self) -> None:
        with pytest.raises(TypeError):
            ORJSONResponse({"value": object()})
