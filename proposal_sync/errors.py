"""Error taxonomy for proposal sync operations."""
from __future__ import annotations

import asyncio
from typing import Any, Optional


class SyncError(Exception):
    """Base class for every error raised by the sync subsystem."""


class NotFoundError(SyncError):
    """Raised when a record is absent from a store where it was required."""

    def __init__(self, store: str, proposal_id: Any, message: Optional[str] = None) -> None:
        self.store = store
        self.proposal_id = proposal_id
        super().__init__(message or f"Proposal {proposal_id} not found in {store} store")


class OrphanRecordError(NotFoundError):
    """Raised when a document has no relational row to sync into.

    The relational store owns proposal ids, so a document-only record has to
    go through ``SyncOrchestrator.promote_document`` to get one.
    """

    def __init__(self, proposal_id: Any) -> None:
        super().__init__(
            "relational",
            proposal_id,
            f"Proposal {proposal_id} exists only in the document store; "
            "promote it to allocate a relational id",
        )


class StoreUnavailableError(SyncError):
    """Raised when a store call fails at the I/O level or times out.

    After a timeout ``pending`` holds the future of the abandoned call, which
    may still be writing.
    """

    def __init__(
        self,
        store: str,
        cause: Optional[BaseException] = None,
        *,
        retryable: bool = False,
        operation: Optional[str] = None,
        pending: Optional[asyncio.Future] = None,
    ) -> None:
        self.store = store
        self.cause = cause
        self.retryable = retryable
        self.operation = operation
        self.pending = pending
        detail = f": {cause}" if cause is not None else ""
        where = f" during {operation}" if operation else ""
        super().__init__(f"{store} store unavailable{where}{detail}")


class ValidationError(SyncError):
    """Raised when caller-supplied parameters are invalid."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class MappingError(SyncError):
    """Raised when a stored value cannot be coerced between representations."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot map field '{field}' ({value!r}): {reason}")
