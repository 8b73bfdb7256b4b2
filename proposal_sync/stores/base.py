"""Repository contracts and the shared store-call guard."""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Type, TypeVar

from ..errors import StoreUnavailableError
from ..models import SyncResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

RELATIONAL_STORE = "relational"
DOCUMENT_STORE = "document"


class RelationalRepository(Protocol):
    """CRUD against the relational proposals table."""

    async def get_by_id(self, proposal_id: int) -> Optional[Dict[str, Any]]: ...

    async def update_fields(self, proposal_id: int, fields: Dict[str, Any]) -> SyncResult: ...

    async def insert(self, fields: Dict[str, Any]) -> int: ...

    async def list_by_organization(self, organization_id: int) -> List[Dict[str, Any]]: ...

    async def count_by_organization(self, organization_id: int) -> int: ...

    async def latest_organization_name(self, organization_id: int) -> Optional[str]: ...


class DocumentRepository(Protocol):
    """CRUD against the proposals document collection."""

    async def get_by_id(self, proposal_id: str) -> Optional[Dict[str, Any]]: ...

    async def upsert(self, proposal_id: str, document: Dict[str, Any]) -> SyncResult: ...

    async def count_by_organization(self, organization_id: int) -> int: ...


class OrganizationDirectory(Protocol):
    """Owner-profile lookups used to resolve canonical organization names."""

    async def owner_organization_name(self, organization_id: int) -> Optional[str]: ...


async def run_store_call(
    store: str,
    func: Callable[..., T],
    *args: Any,
    timeout: Optional[float],
    operation: str,
    errors: Tuple[Type[BaseException], ...] = (OSError,),
) -> T:
    """Run a blocking store call off the event loop under a timeout.

    Args:
        store: Store name reported in errors ("relational" or "document").
        func: Blocking driver call.
        timeout: Seconds before the call is abandoned; None disables it.
        operation: Short label for logs and error messages.
        errors: Driver exception types that mean the store is unavailable.

    Returns:
        Whatever ``func`` returns.

    Raises:
        StoreUnavailableError: on a listed driver error (not retryable unless
            it is a connection-level OSError) or on timeout (retryable). A
            worker thread cannot be interrupted, so a timed-out call keeps
            running; its future is attached as ``pending``.
    """
    call = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.wait_for(asyncio.shield(call), timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("[%s] %s timed out after %ss", store, operation, timeout)
        call.add_done_callback(functools.partial(_log_late_result, store, operation))
        raise StoreUnavailableError(
            store, exc, retryable=True, operation=operation, pending=call
        ) from exc
    except errors as exc:
        logger.error("[%s] %s failed: %s", store, operation, exc)
        raise StoreUnavailableError(
            store,
            exc,
            retryable=isinstance(exc, (ConnectionError, TimeoutError)),
            operation=operation,
        ) from exc


def _log_late_result(store: str, operation: str, call: asyncio.Future) -> None:
    if call.cancelled():
        return
    exc = call.exception()
    if exc is not None:
        logger.error("[%s] %s failed after timing out: %s", store, operation, exc)
    else:
        logger.info("[%s] %s finished after timing out", store, operation)
