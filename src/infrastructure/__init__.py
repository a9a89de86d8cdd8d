"""Infrastructure layer: PostgreSQL persistence and outbound HTTP clients.

Concrete classes here satisfy the protocols declared in
``src.domain.fiscal.protocols``.
"""
