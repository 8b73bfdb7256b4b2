"""Sync module for relational <-> document proposal consistency."""
from __future__ import annotations

from .audit import DEFAULT_ORGANIZATION_NAME, OrganizationAuditor
from .differ import DifferenceDetector, values_equal
from .locks import RecordLocks
from .resolver import ConflictResolver
from .service import SyncOrchestrator, validate_proposal_id, validate_sync_params
from .validator import EXISTENCE_FIELD, ConsistencyValidator

__all__ = [
    "DEFAULT_ORGANIZATION_NAME",
    "EXISTENCE_FIELD",
    "ConflictResolver",
    "ConsistencyValidator",
    "DifferenceDetector",
    "OrganizationAuditor",
    "RecordLocks",
    "SyncOrchestrator",
    "validate_proposal_id",
    "validate_sync_params",
    "values_equal",
]
