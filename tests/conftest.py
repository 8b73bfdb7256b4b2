"""Shared fixtures: in-memory SQLite proposals and a JSONL document store."""
from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pytest
from sqlalchemy import insert

from proposal_sync.stores import (
    FileDocumentRepository,
    SqlOrganizationDirectory,
    SqlProposalRepository,
    create_proposal_engine,
    init_schema,
    proposals_table,
    users_table,
)
from proposal_sync.sync import ConsistencyValidator, OrganizationAuditor, SyncOrchestrator


class RecordingSyncLog:
    """SyncLog double that keeps every call."""

    def __init__(self) -> None:
        self.entries: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, operation: str, details: Dict[str, Any]) -> None:
        self.entries.append((operation, details))

    @property
    def operations(self) -> List[str]:
        return [operation for operation, _ in self.entries]


@pytest.fixture
def engine():
    engine = create_proposal_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def relational(engine) -> SqlProposalRepository:
    return SqlProposalRepository(engine, timeout=5)


@pytest.fixture
def documents(tmp_path) -> FileDocumentRepository:
    return FileDocumentRepository(tmp_path / "document_store", timeout=5)


@pytest.fixture
def sync_log() -> RecordingSyncLog:
    return RecordingSyncLog()


@pytest.fixture
def orchestrator(relational, documents, sync_log) -> SyncOrchestrator:
    return SyncOrchestrator(relational, documents, sync_log=sync_log)


@pytest.fixture
def validator(relational, documents) -> ConsistencyValidator:
    return ConsistencyValidator(relational, documents)


@pytest.fixture
def auditor(engine, relational, documents) -> OrganizationAuditor:
    return OrganizationAuditor(relational, documents, SqlOrganizationDirectory(engine, timeout=5))


@pytest.fixture
def seed_proposal(engine):
    """Insert a proposal row directly and return its id."""

    def _seed(**values: Any) -> int:
        values.setdefault("proposal_status", "draft")
        with engine.begin() as conn:
            result = conn.execute(insert(proposals_table).values(**values))
        return int(result.inserted_primary_key[0])

    return _seed


@pytest.fixture
def seed_user(engine):
    def _seed(**values: Any) -> None:
        values.setdefault("is_owner", False)
        with engine.begin() as conn:
            conn.execute(insert(users_table).values(**values))

    return _seed
