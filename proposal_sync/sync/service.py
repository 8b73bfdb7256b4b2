"""Proposal sync between the relational store and the document store.

This service handles:
- Pushing relational rows into their document mirrors (full overwrite)
- Pulling allowlisted document edits back into existing relational rows
- Bidirectional sync with relational-wins conflict resolution
- Promoting document-only proposals into the relational store
- Sequential batch sync with per-id error collection

The relational store owns proposal ids. Every operation for a given id runs
under that id's lock, so two callers never interleave writes to one pair.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar, Union

from ..errors import NotFoundError, OrphanRecordError, ValidationError
from ..logs import LoggingSyncLog, SyncLog
from ..mapping import (
    ALLOWLISTED_DOCUMENT_FIELDS,
    PROMOTION_DOCUMENT_FIELDS,
    SYNC_METADATA_FIELDS,
    FieldMapper,
)
from ..models import (
    BatchError,
    BatchSyncResult,
    BidirectionalSyncResult,
    SyncDirection,
    SyncOperation,
    SyncResult,
    sync_timestamp,
)
from ..stores.base import DOCUMENT_STORE, RELATIONAL_STORE, DocumentRepository, RelationalRepository
from .differ import DifferenceDetector
from .locks import RecordLocks
from .resolver import ConflictResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Status given to rows created from document-only proposals.
PROMOTED_STATUS = "draft"


# =============================================================================
# Parameter validation
# =============================================================================

def _parse_id(value: Any, errors: List[str]) -> Optional[int]:
    if value is None or value == "":
        errors.append("proposal_id is required")
        return None
    if isinstance(value, bool):
        errors.append(f"proposal_id must be a positive integer, got {value!r}")
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdecimal():
        parsed = int(value.strip())
    else:
        errors.append(f"proposal_id must be a positive integer, got {value!r}")
        return None
    if parsed <= 0:
        errors.append(f"proposal_id must be a positive integer, got {value!r}")
        return None
    return parsed


def _parse_direction(value: Any, errors: List[str]) -> Optional[SyncDirection]:
    if isinstance(value, SyncDirection):
        return value
    if isinstance(value, str):
        try:
            return SyncDirection(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(d.value for d in SyncDirection)
    errors.append(f"Unsupported sync direction {value!r}; expected one of: {allowed}")
    return None


def validate_sync_params(
    proposal_id: Any,
    direction: Any = SyncDirection.BIDIRECTIONAL,
) -> Tuple[int, SyncDirection]:
    """Normalize a caller-supplied id and sync direction.

    Args:
        proposal_id: Relational id as an int or a digit string.
        direction: A SyncDirection or its string value.

    Returns:
        (proposal_id, direction)

    Raises:
        ValidationError: listing every problem found.
    """
    errors: List[str] = []
    parsed_id = _parse_id(proposal_id, errors)
    parsed_direction = _parse_direction(direction, errors)
    if errors:
        raise ValidationError(errors)
    return parsed_id, parsed_direction


def validate_proposal_id(proposal_id: Any) -> int:
    errors: List[str] = []
    parsed = _parse_id(proposal_id, errors)
    if errors:
        raise ValidationError(errors)
    return parsed


# =============================================================================
# Orchestrator
# =============================================================================

class SyncOrchestrator:
    """Single-record and batch sync operations over two proposal stores.

    Design Principles:
    - The relational store is the system of record and the id authority
    - Documents are full mirrors of relational rows plus sync metadata
    - Documents may only push workflow-neutral fields back (the allowlist)
    - Without a document store every operation returns a degraded no-op
    """

    def __init__(
        self,
        relational: RelationalRepository,
        documents: Optional[DocumentRepository],
        *,
        mapper: Optional[FieldMapper] = None,
        detector: Optional[DifferenceDetector] = None,
        resolver: Optional[ConflictResolver] = None,
        sync_log: Optional[SyncLog] = None,
        locks: Optional[RecordLocks] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            relational: Relational proposal repository.
            documents: Document repository, or None to run degraded.
            mapper: Field mapper shared by every operation.
            detector: Difference detector (ignores sync metadata by default).
            resolver: Conflict resolver (relational-wins).
            sync_log: Sink called at the start and end of every operation.
            locks: Per-id lock map; pass one in to share it across instances.
        """
        self.relational = relational
        self.documents = documents
        self.mapper = mapper or FieldMapper()
        self.detector = detector or DifferenceDetector()
        self.resolver = resolver or ConflictResolver()
        self.sync_log = sync_log or LoggingSyncLog()
        self.locks = locks or RecordLocks()

    @property
    def degraded(self) -> bool:
        """True when no document store is configured."""
        return self.documents is None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def sync_relational_to_document(self, proposal_id: Any) -> SyncResult:
        """Overwrite (or create) the document mirror of a relational row.

        Returns:
            SyncResult with operation insert or update. ``changed_fields``
            lists the fields whose mirrored value actually changed.

        Raises:
            NotFoundError: if the relational row does not exist.
        """
        pid = validate_proposal_id(proposal_id)
        async with self.locks.hold(pid):
            return await self._run("sync_relational_to_document", pid, self._relational_to_document, pid)

    async def sync_document_to_relational(self, proposal_id: Any) -> SyncResult:
        """Apply allowlisted document fields to the existing relational row.

        Raises:
            NotFoundError: if the document does not exist.
            OrphanRecordError: if the document has no relational row.
        """
        pid = validate_proposal_id(proposal_id)
        async with self.locks.hold(pid):
            return await self._run("sync_document_to_relational", pid, self._document_to_relational, pid)

    async def bidirectional_sync(self, proposal_id: Any) -> BidirectionalSyncResult:
        """Bring both sides of a pair into agreement, relational values winning."""
        pid = validate_proposal_id(proposal_id)
        async with self.locks.hold(pid):
            return await self._run("bidirectional_sync", pid, self._bidirectional, pid)

    async def promote_document(self, proposal_id: Any) -> SyncResult:
        """Create a relational row for a document-only proposal.

        The relational store assigns the new id. The document is then
        mirrored under that id with ``promotedFrom`` set to the old document
        id; the old document is left in place. If an unrelated document
        already sits at the new id it is not overwritten; the result comes
        back with ``mirrored=False`` instead.

        The old id is locked for the insert and the new id for the mirror,
        never both at once.

        Raises:
            NotFoundError: if the document does not exist.
            ValidationError: if a relational row already exists for the id.
        """
        pid = validate_proposal_id(proposal_id)
        return await self._run("promote_document", pid, self._promote, pid)

    async def batch_sync(self, proposal_ids: Iterable[Any]) -> BatchSyncResult:
        """Run sync_relational_to_document for each id, one at a time.

        A failing id is recorded in ``errors`` and the batch continues.

        Raises:
            ValidationError: if ``proposal_ids`` is not a list of ids.
        """
        if proposal_ids is None or isinstance(proposal_ids, (str, bytes, dict)):
            raise ValidationError(["proposal_ids must be a list of proposal ids"])
        ids = list(proposal_ids)
        summary = BatchSyncResult(total=len(ids))
        self.sync_log("batch_sync started", {"total": summary.total, "degraded": self.degraded})

        for proposal_id in ids:
            try:
                summary.results.append(await self.sync_relational_to_document(proposal_id))
            except Exception as exc:
                logger.warning("[SYNC] Batch item %r failed: %s", proposal_id, exc)
                summary.errors.append(
                    BatchError(proposal_id=proposal_id, error=str(exc), error_type=type(exc).__name__)
                )

        self.sync_log(
            "batch_sync completed",
            {"total": summary.total, "successful": summary.successful, "failed": summary.failed},
        )
        return summary

    async def sync(
        self,
        proposal_id: Any,
        direction: Any = SyncDirection.BIDIRECTIONAL,
    ) -> Union[SyncResult, BidirectionalSyncResult]:
        """Dispatch to the operation for ``direction``.

        Raises:
            ValidationError: for a missing or invalid id or direction.
        """
        pid, parsed = validate_sync_params(proposal_id, direction)
        if parsed is SyncDirection.RELATIONAL_TO_DOCUMENT:
            return await self.sync_relational_to_document(pid)
        if parsed is SyncDirection.DOCUMENT_TO_RELATIONAL:
            return await self.sync_document_to_relational(pid)
        return await self.bidirectional_sync(pid)

    # ------------------------------------------------------------------
    # Operation bodies (caller holds the id lock)
    # ------------------------------------------------------------------

    async def _relational_to_document(
        self,
        pid: int,
        *,
        promoted_from: Optional[str] = None,
    ) -> SyncResult:
        row = await self.relational.get_by_id(pid)
        if row is None:
            raise NotFoundError(RELATIONAL_STORE, pid)
        if self.documents is None:
            return self._degraded_result(pid, SyncDirection.RELATIONAL_TO_DOCUMENT)

        mapped = self.mapper.to_document(row)
        doc_id = self.mapper.document_id(pid)
        existing = await self.documents.get_by_id(doc_id) or {}
        changed = [d.field for d in self.detector.compare(mapped, existing)]

        document = {k: v for k, v in existing.items() if k in SYNC_METADATA_FIELDS}
        document.update(mapped)
        document["lastSyncedFromRelational"] = sync_timestamp()
        if promoted_from is not None:
            document["promotedFrom"] = promoted_from

        written = await self.documents.upsert(doc_id, document)
        return SyncResult(
            operation=written.operation,
            proposal_id=pid,
            direction=SyncDirection.RELATIONAL_TO_DOCUMENT,
            changed_fields=changed,
        )

    async def _document_to_relational(self, pid: int) -> SyncResult:
        if self.documents is None:
            return self._degraded_result(pid, SyncDirection.DOCUMENT_TO_RELATIONAL)

        document = await self.documents.get_by_id(self.mapper.document_id(pid))
        if document is None:
            raise NotFoundError(DOCUMENT_STORE, pid)
        row = await self.relational.get_by_id(pid)
        if row is None:
            raise OrphanRecordError(pid)

        # Compare in document shape so list and decimal fields match structurally.
        current = self.mapper.to_document(row)
        wanted = {name: document[name] for name in ALLOWLISTED_DOCUMENT_FIELDS if name in document}
        differences = self.detector.compare(
            {name: current.get(name) for name in wanted},
            wanted,
            ignore_fields=(),
        )
        if not differences:
            return SyncResult(
                operation=SyncOperation.NOOP,
                proposal_id=pid,
                direction=SyncDirection.DOCUMENT_TO_RELATIONAL,
            )

        changed = {d.field: document[d.field] for d in differences}
        fields = self.mapper.to_relational_subset(changed, ALLOWLISTED_DOCUMENT_FIELDS)
        return await self.relational.update_fields(pid, fields)

    async def _bidirectional(self, pid: int) -> BidirectionalSyncResult:
        row = await self.relational.get_by_id(pid)
        if self.documents is None:
            return BidirectionalSyncResult(
                proposal_id=pid,
                relational_exists=row is not None,
                document_exists=False,
                degraded=True,
            )

        doc_id = self.mapper.document_id(pid)
        document = await self.documents.get_by_id(doc_id)
        result = BidirectionalSyncResult(
            proposal_id=pid,
            relational_exists=row is not None,
            document_exists=document is not None,
        )

        if row is None and document is None:
            return result
        if document is None:
            result.sync_result = await self._relational_to_document(pid)
            result.operation = result.sync_result.operation
            return result
        if row is None:
            result.sync_result = await self._document_to_relational(pid)
            result.operation = result.sync_result.operation
            return result

        mapped = self.mapper.to_document(row)
        result.differences = self.detector.compare(mapped, document)
        if not result.differences:
            return result

        resolved, resolution = self.resolver.resolve(pid, result.differences, document, mapped.keys())
        written = await self.documents.upsert(doc_id, resolved)
        result.resolution = resolution
        result.operation = written.operation
        result.sync_result = SyncResult(
            operation=written.operation,
            proposal_id=pid,
            direction=SyncDirection.BIDIRECTIONAL,
            changed_fields=[d.field for d in result.differences],
        )
        return result

    async def _promote(self, pid: int) -> SyncResult:
        # Takes its own locks: pid for the insert, then the new id for the mirror.
        if self.documents is None:
            return self._degraded_result(pid, SyncDirection.DOCUMENT_TO_RELATIONAL)

        doc_id = self.mapper.document_id(pid)
        async with self.locks.hold(pid):
            document = await self.documents.get_by_id(doc_id)
            if document is None:
                raise NotFoundError(DOCUMENT_STORE, pid)
            if await self.relational.get_by_id(pid) is not None:
                raise ValidationError(
                    [f"Proposal {pid} already exists in the relational store; sync it instead of promoting"]
                )

            fields = self.mapper.to_relational_subset(document, PROMOTION_DOCUMENT_FIELDS)
            fields["proposal_status"] = PROMOTED_STATUS
            new_id = await self.relational.insert(fields)
            logger.info("[SYNC] Promoted document %s to relational id %s", doc_id, new_id)

            if new_id == pid:
                await self._relational_to_document(new_id, promoted_from=doc_id)
                mirrored = True

        if new_id != pid:
            async with self.locks.hold(new_id):
                mirrored = await self._mirror_promoted(new_id, doc_id)

        return SyncResult(
            operation=SyncOperation.INSERT,
            proposal_id=new_id,
            direction=SyncDirection.DOCUMENT_TO_RELATIONAL,
            changed_fields=sorted(fields),
            promoted_from=pid,
            mirrored=mirrored,
        )

    async def _mirror_promoted(self, new_id: int, doc_id: str) -> bool:
        """Mirror a freshly promoted row unless another record owns the slot.

        A document already stored under the new id that does not match the
        new row belongs to some other document-only proposal; it is left
        untouched and the new row stays unmirrored.
        """
        target_id = self.mapper.document_id(new_id)
        occupant = await self.documents.get_by_id(target_id)
        if occupant is not None:
            row = await self.relational.get_by_id(new_id)
            if row is None or self.detector.compare(self.mapper.to_document(row), occupant):
                logger.warning(
                    "[SYNC] Document %s already holds another proposal; promoted row %s left unmirrored",
                    target_id,
                    new_id,
                )
                return False
        await self._relational_to_document(new_id, promoted_from=doc_id)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _degraded_result(self, pid: int, direction: SyncDirection) -> SyncResult:
        logger.warning("[SYNC] No document store configured; %s for %s skipped", direction.value, pid)
        return SyncResult(
            operation=SyncOperation.NOOP,
            proposal_id=pid,
            direction=direction,
            degraded=True,
        )

    async def _run(
        self,
        operation: str,
        pid: int,
        func: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        self.sync_log(f"{operation} started", {"proposalId": pid, "degraded": self.degraded})
        try:
            result = await func(*args)
        except Exception as exc:
            logger.error("[SYNC] %s failed for proposal %s: %s", operation, pid, exc)
            self.sync_log(
                f"{operation} failed",
                {"proposalId": pid, "error": str(exc), "errorType": type(exc).__name__},
            )
            raise
        details: Dict[str, Any] = result.to_dict()
        self.sync_log(f"{operation} completed", details)
        return result
