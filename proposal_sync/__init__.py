"""Consistency engine for relational proposals and their document mirrors."""
from __future__ import annotations

from .errors import (
    MappingError,
    NotFoundError,
    OrphanRecordError,
    StoreUnavailableError,
    SyncError,
    ValidationError,
)
from .models import PairState, SyncDirection, SyncOperation

__version__ = "0.1.0"

__all__ = [
    "MappingError",
    "NotFoundError",
    "OrphanRecordError",
    "PairState",
    "StoreUnavailableError",
    "SyncDirection",
    "SyncError",
    "SyncOperation",
    "ValidationError",
    "__version__",
]
