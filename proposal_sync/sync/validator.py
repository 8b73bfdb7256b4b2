"""Post-hoc consistency checks between the two proposal stores."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from ..errors import ValidationError
from ..mapping import FieldMapper
from ..models import ConsistencyReport, FieldDifference, OrphanReport, PairState
from ..stores.base import DocumentRepository, RelationalRepository
from .differ import DifferenceDetector
from .service import validate_proposal_id

logger = logging.getLogger(__name__)

EXISTENCE_FIELD = "existence"


class ConsistencyValidator:
    """Read-only comparison of a proposal across both stores.

    Nothing here writes; reports say what a later sync would have to fix.
    """

    def __init__(
        self,
        relational: RelationalRepository,
        documents: Optional[DocumentRepository],
        *,
        mapper: Optional[FieldMapper] = None,
        detector: Optional[DifferenceDetector] = None,
    ) -> None:
        self.relational = relational
        self.documents = documents
        self.mapper = mapper or FieldMapper()
        self.detector = detector or DifferenceDetector()

    async def validate_sync_integrity(self, proposal_id: Any) -> ConsistencyReport:
        """Compare the relational row and the document for one proposal.

        A missing side fails the report with a single ``existence``
        difference whose values are the two existence flags. Without a
        document store the report is marked degraded and never passes.

        Raises:
            ValidationError: for an invalid id.
            StoreUnavailableError: if either store cannot be read.
            MappingError: if the relational row cannot be mapped.
        """
        pid = validate_proposal_id(proposal_id)
        row = await self.relational.get_by_id(pid)

        if self.documents is None:
            return ConsistencyReport(
                proposal_id=pid,
                relational_exists=row is not None,
                document_exists=False,
                differences=[FieldDifference(EXISTENCE_FIELD, row is not None, False)],
                degraded=True,
            )

        document = await self.documents.get_by_id(self.mapper.document_id(pid))
        report = ConsistencyReport(
            proposal_id=pid,
            relational_exists=row is not None,
            document_exists=document is not None,
        )
        if row is None or document is None:
            report.differences = [
                FieldDifference(EXISTENCE_FIELD, report.relational_exists, report.document_exists)
            ]
            return report

        report.differences = self.detector.compare(self.mapper.to_document(row), document)
        report.passed = not report.differences
        if not report.passed:
            logger.info(
                "[SYNC] Proposal %s differs on: %s",
                pid,
                ", ".join(d.field for d in report.differences),
            )
        return report

    async def classify(self, proposal_id: Any) -> PairState:
        """Return the pair state of one proposal."""
        report = await self.validate_sync_integrity(proposal_id)
        return report.state

    async def find_orphans(self, proposal_ids: Iterable[Any]) -> OrphanReport:
        """Group ids by pair state.

        Raises:
            ValidationError: if any id is invalid; nothing is read in that case.
        """
        if proposal_ids is None or isinstance(proposal_ids, (str, bytes, dict)):
            raise ValidationError(["proposal_ids must be a list of proposal ids"])
        ids = [validate_proposal_id(value) for value in proposal_ids]

        # Without a document store every existing row looks relational-only.
        summary = OrphanReport(degraded=self.documents is None)
        buckets = {
            PairState.CONSISTENT: summary.consistent,
            PairState.CONFLICTING: summary.conflicting,
            PairState.RELATIONAL_ONLY: summary.relational_only,
            PairState.DOCUMENT_ONLY: summary.document_only,
            PairState.ABSENT: summary.absent,
        }
        for pid in dict.fromkeys(ids):
            buckets[await self.classify(pid)].append(pid)
            summary.checked += 1

        if summary.orphan_count:
            logger.warning(
                "[SYNC] Orphan scan: %s relational-only, %s document-only out of %s",
                len(summary.relational_only),
                len(summary.document_only),
                summary.checked,
            )
        return summary
