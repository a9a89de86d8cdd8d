"""Cross-cutting building blocks shared by every layer.

- **config**: typed settings loaded from the environment
- **context**: correlation and request ids
- **exceptions**: error hierarchy with codes and severities
- **error_context**: redaction of sensitive values for logs and responses
- **logging**: Loguru setup
- **observability**: OpenTelemetry tracing
"""
