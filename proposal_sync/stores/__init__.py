"""Relational and document repositories for proposal records."""
from __future__ import annotations

from .base import (
    DOCUMENT_STORE,
    RELATIONAL_STORE,
    DocumentRepository,
    OrganizationDirectory,
    RelationalRepository,
    run_store_call,
)
from .documents import FileDocumentRepository, FirestoreDocumentRepository, build_document_repository
from .relational import (
    SqlOrganizationDirectory,
    SqlProposalRepository,
    create_proposal_engine,
    init_schema,
    proposals_table,
    users_table,
)

__all__ = [
    "DOCUMENT_STORE",
    "RELATIONAL_STORE",
    "DocumentRepository",
    "FileDocumentRepository",
    "FirestoreDocumentRepository",
    "OrganizationDirectory",
    "RelationalRepository",
    "SqlOrganizationDirectory",
    "SqlProposalRepository",
    "build_document_repository",
    "create_proposal_engine",
    "init_schema",
    "proposals_table",
    "run_store_call",
    "users_table",
]
