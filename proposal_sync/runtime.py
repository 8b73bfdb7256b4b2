"""Wire repositories and sync components from Settings."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from .config import Settings
from .logs import JsonlSyncLog, LoggingSyncLog, SyncLog
from .stores import (
    DocumentRepository,
    SqlOrganizationDirectory,
    SqlProposalRepository,
    build_document_repository,
    create_proposal_engine,
)
from .sync import ConsistencyValidator, OrganizationAuditor, SyncOrchestrator


@dataclass(slots=True)
class SyncComponents:
    """Everything a caller needs to run sync jobs against one deployment."""

    engine: Engine
    relational: SqlProposalRepository
    documents: Optional[DocumentRepository]
    orchestrator: SyncOrchestrator
    validator: ConsistencyValidator
    auditor: OrganizationAuditor

    @property
    def degraded(self) -> bool:
        return self.documents is None


def build_components(settings: Settings, *, sync_log: Optional[SyncLog] = None) -> SyncComponents:
    """Create stores and sync services for the configured backends.

    The JSONL activity trail is enabled when ``settings.sync_log_path`` is
    set; otherwise sync events only go to the Python logger.
    """
    engine = create_proposal_engine(settings.database_url)
    relational = SqlProposalRepository(engine, timeout=settings.store_timeout)
    directory = SqlOrganizationDirectory(engine, timeout=settings.store_timeout)
    documents = build_document_repository(settings)

    if sync_log is None:
        sync_log = JsonlSyncLog(settings.sync_log_path) if settings.sync_log_path else LoggingSyncLog()

    return SyncComponents(
        engine=engine,
        relational=relational,
        documents=documents,
        orchestrator=SyncOrchestrator(relational, documents, sync_log=sync_log),
        validator=ConsistencyValidator(relational, documents),
        auditor=OrganizationAuditor(relational, documents, directory),
    )
