"""API-related constants."""

API_V1_PREFIX = "/api/v1"
FISCAL_PREFIX = "/fiscal"

# Client-facing messages used when internals must stay hidden
INTERNAL_ERROR_MESSAGE = "An internal server error occurred"
EXTERNAL_SERVICE_PUBLIC_MESSAGE = "An upstream service failed to process the request"
