"""External collaborators of the session engine."""

from gitlog_backend.backends.base import (
    BackendError,
    ProgressChannel,
    ReportBackend,
    RepositoryBackend,
)
from gitlog_backend.backends.progress import ProgressBus

__all__ = [
    "BackendError",
    "ProgressBus",
    "ProgressChannel",
    "ReportBackend",
    "RepositoryBackend",
]
