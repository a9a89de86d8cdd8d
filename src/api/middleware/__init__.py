"""Request middleware and exception handlers.

Execution order for an incoming request:
1. ``RequestContextMiddleware`` sets correlation and request ids
2. ``RequestLoggingMiddleware`` logs with those ids bound
3. exception handlers turn failures into ``ErrorResponse`` bodies
"""
