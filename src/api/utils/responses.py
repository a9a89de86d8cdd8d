"""orjson-backed JSON responses.

``Decimal`` values are rendered as strings so money and exchange rates keep
their exact scale.
"""

from decimal import Decimal
from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


def _default(value: object) -> object:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


class ORJSONResponse(JSONResponse):
    """Default response class for the application."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json")
        return orjson.dumps(content, default=_default, option=orjson.OPT_SORT_KEYS)
