"""Tests for the sync HTTP endpoints and their error mapping."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_components, get_settings
from api.main import app
from proposal_sync.config import Settings
from proposal_sync.errors import StoreUnavailableError
from proposal_sync.logs import JsonlSyncLog
from proposal_sync.runtime import SyncComponents
from proposal_sync.stores import SqlOrganizationDirectory
from proposal_sync.sync import ConsistencyValidator, OrganizationAuditor, SyncOrchestrator


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "sync_log.jsonl"


@pytest.fixture
def components(engine, relational, documents, log_path) -> SyncComponents:
    return SyncComponents(
        engine=engine,
        relational=relational,
        documents=documents,
        orchestrator=SyncOrchestrator(relational, documents, sync_log=JsonlSyncLog(log_path)),
        validator=ConsistencyValidator(relational, documents),
        auditor=OrganizationAuditor(relational, documents, SqlOrganizationDirectory(engine)),
    )


@pytest.fixture
def client(components, log_path):
    app.dependency_overrides[get_components] = lambda: components
    app.dependency_overrides[get_settings] = lambda: Settings(
        database_url="sqlite://",
        document_backend="file",
        sync_log_path=log_path,
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_check(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["services"]["document"] == "configured"


# =============================================================================
# Sync Endpoints
# =============================================================================

def test_sync_relational_to_document(client, seed_proposal):
    pid = seed_proposal(organization_name="Acme")

    resp = client.post(f"/sync/proposals/{pid}", json={"direction": "relational_to_document"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["operation"] == "insert"
    assert body["proposalId"] == pid
    assert body["direction"] == "relational_to_document"


def test_sync_without_body_is_bidirectional(client):
    resp = client.post("/sync/proposals/99")
    assert resp.status_code == 200
    body = resp.json()
    assert body["operation"] == "noop"
    assert body["relationalExists"] is False


def test_missing_row_is_404(client):
    resp = client.post("/sync/proposals/404", json={"direction": "relational_to_document"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["store"] == "relational"


def test_orphan_document_is_409(client, documents):
    asyncio.run(documents.upsert("41", {"proposalId": "41", "organization_name": "Ghost"}))

    resp = client.post("/sync/proposals/41", json={"direction": "document_to_relational"})

    assert resp.status_code == 409


def test_invalid_parameters_are_422(client):
    resp = client.post("/sync/proposals/abc", json={"direction": "sideways"})
    assert resp.status_code == 422
    assert len(resp.json()["detail"]["errors"]) == 2


def test_superscript_digit_id_is_422(client):
    resp = client.post("/sync/proposals/\u00b9\u00b2", json={"direction": "relational_to_document"})
    assert resp.status_code == 422
    assert "proposal_id" in resp.json()["detail"]["errors"][0]


def test_unmappable_row_is_422(client, seed_proposal):
    pid = seed_proposal(target_audience="[broken")

    resp = client.post(f"/sync/proposals/{pid}", json={"direction": "relational_to_document"})

    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "target_audience"


def test_store_outage_is_503(client, components):
    relational = AsyncMock()
    relational.get_by_id.side_effect = StoreUnavailableError(
        "relational", TimeoutError("slow"), retryable=True, operation="get_by_id"
    )
    components.orchestrator = SyncOrchestrator(relational, components.documents)

    resp = client.post("/sync/proposals/5", json={"direction": "bidirectional"})

    assert resp.status_code == 503
    assert resp.json()["detail"]["retryable"] is True
    assert resp.headers["retry-after"] == "5"


def test_batch_sync_reports_partial_failure(client, seed_proposal):
    pid = seed_proposal(organization_name="Acme")

    resp = client.post("/sync/proposals/batch", json={"proposal_ids": [pid, 999]})

    assert resp.status_code == 200
    body = resp.json()
    assert (body["total"], body["successful"], body["failed"]) == (2, 1, 1)
    assert body["errors"][0]["errorType"] == "NotFoundError"


def test_promote_document(client, documents):
    asyncio.run(documents.upsert("700", {"proposalId": "700", "organization_name": "Beta"}))

    resp = client.post("/sync/proposals/700/promote")

    assert resp.status_code == 200
    assert resp.json()["promotedFrom"] == 700


# =============================================================================
# Consistency Endpoints
# =============================================================================

def test_integrity_after_sync(client, seed_proposal):
    pid = seed_proposal(organization_name="Acme")
    client.post(f"/sync/proposals/{pid}", json={"direction": "relational_to_document"})

    resp = client.get(f"/sync/proposals/{pid}/integrity")

    assert resp.status_code == 200
    assert resp.json()["passed"] is True
    assert resp.json()["state"] == "consistent"


def test_orphan_scan(client, seed_proposal):
    pid = seed_proposal(organization_name="Acme")

    resp = client.post("/sync/orphans", json={"proposal_ids": [pid, 12]})

    assert resp.status_code == 200
    body = resp.json()
    assert body["relationalOnly"] == [pid]
    assert body["absent"] == [12]


def test_organization_consistency(client, seed_proposal):
    seed_proposal(organization_id=3, organization_name="Acme")

    resp = client.get("/sync/organizations/3/consistency")

    assert resp.status_code == 200
    body = resp.json()
    assert body["organizationName"] == "Acme"
    assert body["nameSource"] == "latest_proposal"
    assert body["consistency"]["countsMatch"] is False


def test_sync_log_lists_recent_entries(client, seed_proposal):
    pid = seed_proposal(organization_name="Acme")
    client.post(f"/sync/proposals/{pid}", json={"direction": "relational_to_document"})

    resp = client.get("/sync/log?limit=10")

    assert resp.status_code == 200
    operations = [e["operation"] for e in resp.json()["entries"]]
    assert operations[:2] == ["sync_relational_to_document completed", "sync_relational_to_document started"]


def test_sync_log_disabled(client):
    app.dependency_overrides[get_settings] = lambda: Settings(database_url="sqlite://")
    assert client.get("/sync/log").status_code == 404
