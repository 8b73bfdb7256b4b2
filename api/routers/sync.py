"""Proposal sync endpoints (mounted at /sync)."""
from __future__ import annotations

import logging
import time
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from proposal_sync.config import Settings
from proposal_sync.errors import SyncError
from proposal_sync.logs import fetch_sync_entries
from proposal_sync.sync import ConsistencyValidator, OrganizationAuditor, SyncOrchestrator

from api.dependencies import get_auditor, get_orchestrator, get_settings, get_validator, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================

class SyncRequest(BaseModel):
    """Request body for single-proposal sync."""
    direction: str = Field(
        "bidirectional",
        description=(
            "Sync direction: 'relational_to_document', 'document_to_relational', "
            "or 'bidirectional'"
        ),
    )


class BatchSyncRequest(BaseModel):
    """Request body for batch sync (relational -> document)."""
    proposal_ids: List[Union[int, str]] = Field(..., description="Proposal ids, synced one at a time")


class OrphanScanRequest(BaseModel):
    proposal_ids: List[Union[int, str]] = Field(..., description="Proposal ids to classify")


# =============================================================================
# Sync Endpoints
# =============================================================================

# Declared before /proposals/{proposal_id} so "batch" is not read as an id.
@router.post("/proposals/batch")
async def batch_sync(
    request: BatchSyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Push many relational proposals to the document store."""
    start_time = time.time()
    try:
        result = await orchestrator.batch_sync(request.proposal_ids)
    except SyncError as exc:
        raise to_http_error(exc) from exc
    logger.info(
        "[SYNC/BATCH] %s ok, %s failed in %.2fs",
        result.successful,
        result.failed,
        time.time() - start_time,
    )
    return result.to_dict()


@router.post("/proposals/{proposal_id}")
async def sync_proposal(
    proposal_id: str,
    request: Optional[SyncRequest] = None,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Sync one proposal in the requested direction."""
    direction = request.direction if request else "bidirectional"
    logger.info("[SYNC/NOW] Proposal %s, direction: %s", proposal_id, direction)
    try:
        result = await orchestrator.sync(proposal_id, direction)
    except SyncError as exc:
        raise to_http_error(exc) from exc
    return result.to_dict()


@router.post("/proposals/{proposal_id}/promote")
async def promote_proposal(
    proposal_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Allocate a relational row for a document-only proposal."""
    try:
        result = await orchestrator.promote_document(proposal_id)
    except SyncError as exc:
        raise to_http_error(exc) from exc
    return result.to_dict()


# =============================================================================
# Consistency Endpoints
# =============================================================================

@router.get("/proposals/{proposal_id}/integrity")
async def proposal_integrity(
    proposal_id: str,
    validator: ConsistencyValidator = Depends(get_validator),
) -> dict:
    try:
        report = await validator.validate_sync_integrity(proposal_id)
    except SyncError as exc:
        raise to_http_error(exc) from exc
    return report.to_dict()


@router.post("/orphans")
async def orphan_scan(
    request: OrphanScanRequest,
    validator: ConsistencyValidator = Depends(get_validator),
) -> dict:
    """Group the given ids by pair state."""
    try:
        report = await validator.find_orphans(request.proposal_ids)
    except SyncError as exc:
        raise to_http_error(exc) from exc
    return report.to_dict()


@router.get("/organizations/{organization_id}/consistency")
async def organization_consistency(
    organization_id: str,
    auditor: OrganizationAuditor = Depends(get_auditor),
) -> dict:
    """Cross-store proposal audit for one organization."""
    try:
        summary = await auditor.ensure_proposal_consistency(organization_id)
    except SyncError as exc:
        raise to_http_error(exc) from exc
    return summary.to_dict()


@router.get("/log")
def sync_log(
    limit: int = Query(50, ge=1, le=500),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Recent entries from the JSONL sync activity log."""
    if settings.sync_log_path is None:
        raise HTTPException(status_code=404, detail="Sync activity log is not enabled (set PSYNC_SYNC_LOG).")
    return {"entries": fetch_sync_entries(limit=limit, path=settings.sync_log_path)}
