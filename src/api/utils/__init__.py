"""API helpers; ``responses`` provides the orjson response class."""
