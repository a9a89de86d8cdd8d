"""Type aliases for loosely-typed data crossing process boundaries.

Everything here is JSON-shaped: bodies exchanged with the tax API, the payment
processor and the central bank, and the context attached to errors.
"""

from typing import Any

# Decoded JSON object from an external API
type JsonObject = dict[str, Any]

# Context dictionary for error details; values must be JSON-serializable
type ErrorContext = dict[str, Any]

# ASGI scope type for middleware implementations
type AsgiScope = dict[str, Any]
