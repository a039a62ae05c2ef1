"""Database package for the connection manager.

Makes the `db` directory a package so imports such as `from db.metadata import ...`
resolve both from the source tree and when installed.
"""

__all__ = [
    "connection",
    "errors",
    "executor",
    "metadata",
]
