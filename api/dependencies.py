"""Shared dependencies and helper functions for API routers.

Routers resolve sync components through these functions so tests can swap
them with ``app.dependency_overrides``.

Usage in routers:
    from api.dependencies import get_orchestrator, to_http_error
"""
from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, HTTPException

from proposal_sync.config import Settings, load_settings
from proposal_sync.errors import (
    MappingError,
    NotFoundError,
    OrphanRecordError,
    StoreUnavailableError,
    SyncError,
    ValidationError,
)
from proposal_sync.runtime import SyncComponents, build_components
from proposal_sync.sync import ConsistencyValidator, OrganizationAuditor, SyncOrchestrator

logger = logging.getLogger(__name__)


# =============================================================================
# Cached Functions
# =============================================================================

@lru_cache
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return load_settings()


@lru_cache
def get_components() -> SyncComponents:
    """Build stores and sync services once per process."""
    return build_components(get_settings())


def get_orchestrator(components: SyncComponents = Depends(get_components)) -> SyncOrchestrator:
    return components.orchestrator


def get_validator(components: SyncComponents = Depends(get_components)) -> ConsistencyValidator:
    return components.validator


def get_auditor(components: SyncComponents = Depends(get_components)) -> OrganizationAuditor:
    return components.auditor


# =============================================================================
# Error Mapping
# =============================================================================

def to_http_error(exc: SyncError) -> HTTPException:
    """Translate a sync error into a distinguishable HTTP failure.

    NotFoundError -> 404 (orphan documents -> 409), ValidationError and
    MappingError -> 422, StoreUnavailableError -> 503.
    """
    if isinstance(exc, OrphanRecordError):
        return HTTPException(status_code=409, detail={"error": str(exc), "proposalId": exc.proposal_id})
    if isinstance(exc, NotFoundError):
        return HTTPException(
            status_code=404,
            detail={"error": str(exc), "store": exc.store, "proposalId": exc.proposal_id},
        )
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail={"error": "Invalid parameters", "errors": exc.errors})
    if isinstance(exc, MappingError):
        return HTTPException(status_code=422, detail={"error": str(exc), "field": exc.field})
    if isinstance(exc, StoreUnavailableError):
        headers = {"Retry-After": "5"} if exc.retryable else None
        return HTTPException(
            status_code=503,
            detail={"error": str(exc), "store": exc.store, "retryable": exc.retryable},
            headers=headers,
        )
    logger.error("[API] Unmapped sync error: %s", exc)
    return HTTPException(status_code=500, detail={"error": str(exc)})
