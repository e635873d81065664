"""Repository package for database access."""

from .state_blobs import SqliteStateBlobRepository

__all__ = [
    "SqliteStateBlobRepository",
]
