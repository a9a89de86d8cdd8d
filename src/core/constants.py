"""Core application constants."""

MILLISECONDS_PER_SECOND = 1000

REDACTED = "[REDACTED]"

# HTTP headers
CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"
FISCAL_SIGNATURE_HEADER = "X-Fiscal-Signature"

# Fiscal
BRL = "BRL"
BRAZIL_COUNTRY_CODE = "BR"
SAO_PAULO_TZ = "America/Sao_Paulo"
DEFAULT_WEBHOOK_ERROR_MESSAGE = "Unknown error"
