"""Result and report types shared by the sync components."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sync_timestamp() -> str:
    """Return the ISO timestamp used for sync metadata fields."""
    return utc_now().isoformat()


class SyncOperation(str, Enum):
    """What a sync did to its target store."""

    INSERT = "insert"
    UPDATE = "update"
    NOOP = "noop"


class SyncDirection(str, Enum):
    """Direction of a sync operation."""

    RELATIONAL_TO_DOCUMENT = "relational_to_document"
    DOCUMENT_TO_RELATIONAL = "document_to_relational"
    BIDIRECTIONAL = "bidirectional"


class PairState(str, Enum):
    """Consistency state of one relational/document record pair."""

    ABSENT = "absent"
    RELATIONAL_ONLY = "relational_only"
    DOCUMENT_ONLY = "document_only"
    CONSISTENT = "consistent"
    CONFLICTING = "conflicting"


@dataclass(slots=True, frozen=True)
class FieldDifference:
    """A field whose value differs between the two stores."""

    field: str
    relational_value: Any
    document_value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "relationalValue": self.relational_value,
            "documentValue": self.document_value,
        }


@dataclass(slots=True)
class SyncResult:
    """Result of a single-record sync or repository write."""

    operation: SyncOperation
    proposal_id: int
    direction: Optional[SyncDirection] = None
    changed_fields: List[str] = field(default_factory=list)
    degraded: bool = False
    promoted_from: Optional[int] = None
    mirrored: bool = True
    synced_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation.value,
            "proposalId": self.proposal_id,
            "direction": self.direction.value if self.direction else None,
            "changedFields": list(self.changed_fields),
            "degraded": self.degraded,
            "promotedFrom": self.promoted_from,
            "mirrored": self.mirrored,
            "syncedAt": self.synced_at.isoformat(),
        }


@dataclass(slots=True)
class BatchError:
    """A per-id failure collected by a batch sync."""

    proposal_id: Any
    error: str
    error_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "error": self.error,
            "errorType": self.error_type,
        }


@dataclass(slots=True)
class BatchSyncResult:
    """Summary of a batch sync run."""

    total: int
    results: List[SyncResult] = field(default_factory=list)
    errors: List[BatchError] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(slots=True, frozen=True)
class ResolvedField:
    field: str
    old_value: Any
    new_value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "oldValue": self.old_value, "newValue": self.new_value}


@dataclass(slots=True)
class ResolutionRecord:
    """Audit trail of a relational-wins conflict resolution."""

    proposal_id: int
    resolved_fields: List[ResolvedField] = field(default_factory=list)
    strategy: str = "relational-wins"
    resolved_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "strategy": self.strategy,
            "resolvedFields": [f.to_dict() for f in self.resolved_fields],
            "resolvedAt": self.resolved_at.isoformat(),
        }


@dataclass(slots=True)
class BidirectionalSyncResult:
    """Outcome of a bidirectional sync for one proposal."""

    proposal_id: int
    relational_exists: bool
    document_exists: bool
    operation: SyncOperation = SyncOperation.NOOP
    differences: List[FieldDifference] = field(default_factory=list)
    resolution: Optional[ResolutionRecord] = None
    sync_result: Optional[SyncResult] = None
    degraded: bool = False
    synced_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "relationalExists": self.relational_exists,
            "documentExists": self.document_exists,
            "operation": self.operation.value,
            "differences": [d.to_dict() for d in self.differences],
            "resolution": self.resolution.to_dict() if self.resolution else None,
            "syncResult": self.sync_result.to_dict() if self.sync_result else None,
            "degraded": self.degraded,
            "syncedAt": self.synced_at.isoformat(),
        }


@dataclass(slots=True)
class ConsistencyReport:
    """Post-hoc comparison of one proposal across both stores."""

    proposal_id: int
    relational_exists: bool
    document_exists: bool
    differences: List[FieldDifference] = field(default_factory=list)
    passed: bool = False
    degraded: bool = False
    checked_at: datetime = field(default_factory=utc_now)

    @property
    def state(self) -> PairState:
        if not self.relational_exists and not self.document_exists:
            return PairState.ABSENT
        if not self.document_exists:
            return PairState.RELATIONAL_ONLY
        if not self.relational_exists:
            return PairState.DOCUMENT_ONLY
        return PairState.CONSISTENT if self.passed else PairState.CONFLICTING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "relationalExists": self.relational_exists,
            "documentExists": self.document_exists,
            "differences": [d.to_dict() for d in self.differences],
            "passed": self.passed,
            "state": self.state.value,
            "degraded": self.degraded,
            "checkedAt": self.checked_at.isoformat(),
        }


@dataclass(slots=True)
class OrphanReport:
    """Ids grouped by pair state."""

    checked: int = 0
    consistent: List[int] = field(default_factory=list)
    conflicting: List[int] = field(default_factory=list)
    relational_only: List[int] = field(default_factory=list)
    document_only: List[int] = field(default_factory=list)
    absent: List[int] = field(default_factory=list)
    degraded: bool = False

    @property
    def orphan_count(self) -> int:
        return len(self.relational_only) + len(self.document_only)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked": self.checked,
            "consistent": list(self.consistent),
            "conflicting": list(self.conflicting),
            "relationalOnly": list(self.relational_only),
            "documentOnly": list(self.document_only),
            "absent": list(self.absent),
            "orphanCount": self.orphan_count,
            "degraded": self.degraded,
        }


@dataclass(slots=True)
class NameMismatch:
    proposal_id: int
    stored_name: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"proposalId": self.proposal_id, "storedName": self.stored_name}


@dataclass(slots=True)
class OrganizationAuditSummary:
    """Cross-store consistency summary for one organization."""

    organization_id: int
    organization_name: str
    name_source: str
    relational_count: int
    document_count: int
    mismatched_names: List[NameMismatch] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    degraded: bool = False
    checked_at: datetime = field(default_factory=utc_now)

    @property
    def counts_match(self) -> bool:
        return self.relational_count == self.document_count

    @property
    def consistent(self) -> bool:
        return self.counts_match and not self.mismatched_names and not self.degraded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organizationId": self.organization_id,
            "organizationName": self.organization_name,
            "nameSource": self.name_source,
            "consistency": {
                "relationalCount": self.relational_count,
                "documentCount": self.document_count,
                "countsMatch": self.counts_match,
                "mismatchedNames": [m.to_dict() for m in self.mismatched_names],
                "consistent": self.consistent,
            },
            "recommendations": list(self.recommendations),
            "degraded": self.degraded,
            "checkedAt": self.checked_at.isoformat(),
        }
