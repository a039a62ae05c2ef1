"""UI package for the connection manager."""

__all__ = [
    "connection_form",
]
