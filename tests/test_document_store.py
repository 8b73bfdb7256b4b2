"""Tests for the document repositories and the store-call guard."""
from __future__ import annotations

import asyncio
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from proposal_sync.config import Settings
from proposal_sync.errors import StoreUnavailableError
from proposal_sync.models import SyncOperation
from proposal_sync.stores import documents as documents_module
from proposal_sync.stores import (
    FileDocumentRepository,
    FirestoreDocumentRepository,
    SqlProposalRepository,
    build_document_repository,
    create_proposal_engine,
    run_store_call,
)


# =============================================================================
# File Storage
# =============================================================================

class TestFileDocumentRepository:

    def test_upsert_inserts_then_updates(self, tmp_path):
        repo = FileDocumentRepository(tmp_path)

        first = asyncio.run(repo.upsert("3", {"proposalId": "3", "event_name": "Fair"}))
        second = asyncio.run(repo.upsert("3", {"proposalId": "3", "event_name": "Expo"}))

        assert first.operation is SyncOperation.INSERT
        assert second.operation is SyncOperation.UPDATE
        assert asyncio.run(repo.get_by_id("3")) == {"proposalId": "3", "event_name": "Expo"}
        assert len(repo.path.read_text(encoding="utf-8").splitlines()) == 1

    def test_missing_document_is_none(self, tmp_path):
        assert asyncio.run(FileDocumentRepository(tmp_path).get_by_id("1")) is None

    def test_documents_survive_a_new_instance(self, tmp_path):
        asyncio.run(FileDocumentRepository(tmp_path).upsert("4", {"proposalId": "4"}))
        assert asyncio.run(FileDocumentRepository(tmp_path).get_by_id("4")) == {"proposalId": "4"}

    def test_unreadable_lines_are_skipped(self, tmp_path):
        repo = FileDocumentRepository(tmp_path)
        asyncio.run(repo.upsert("5", {"proposalId": "5", "organization_id": 2}))
        with repo.path.open("a", encoding="utf-8") as handle:
            handle.write("{not json\n")

        assert asyncio.run(repo.get_by_id("5")) is not None
        assert asyncio.run(repo.count_by_organization(2)) == 1

    def test_slow_read_times_out_as_retryable(self, tmp_path, monkeypatch):
        repo = FileDocumentRepository(tmp_path, timeout=0.05)
        monkeypatch.setattr(repo, "_get", lambda proposal_id: time.sleep(0.3))

        with pytest.raises(StoreUnavailableError) as exc_info:
            asyncio.run(repo.get_by_id("1"))

        assert exc_info.value.retryable is True
        assert exc_info.value.store == "document"


# =============================================================================
# Firestore Storage
# =============================================================================

def _firestore_client(existing=None, error=None):
    snapshot = MagicMock()
    snapshot.exists = existing is not None
    snapshot.to_dict.return_value = existing
    doc_ref = MagicMock()
    doc_ref.get.return_value = snapshot
    if error is not None:
        doc_ref.get.side_effect = error
    client = MagicMock()
    client.collection.return_value.document.return_value = doc_ref
    return client, doc_ref


class TestFirestoreDocumentRepository:

    def test_get_by_id_reads_collection(self):
        client, _ = _firestore_client(existing={"proposalId": "9"})
        repo = FirestoreDocumentRepository(client, collection="proposals")

        assert asyncio.run(repo.get_by_id(9)) == {"proposalId": "9"}
        client.collection.assert_called_with("proposals")
        client.collection.return_value.document.assert_called_with("9")

    def test_upsert_reports_insert_or_update(self):
        client, doc_ref = _firestore_client(existing=None)
        repo = FirestoreDocumentRepository(client)

        result = asyncio.run(repo.upsert("9", {"proposalId": "9"}))

        assert result.operation is SyncOperation.INSERT
        assert result.proposal_id == 9
        doc_ref.set.assert_called_once_with({"proposalId": "9"})

    def test_api_errors_become_store_unavailable(self):
        client, _ = _firestore_client(error=google_exceptions.ServiceUnavailable("down"))
        repo = FirestoreDocumentRepository(client)

        with pytest.raises(StoreUnavailableError) as exc_info:
            asyncio.run(repo.get_by_id("9"))

        assert exc_info.value.store == "document"
        assert isinstance(exc_info.value.cause, google_exceptions.ServiceUnavailable)

    def test_count_by_organization_streams_query(self):
        client = MagicMock()
        query = client.collection.return_value.where.return_value
        query.stream.return_value = iter([MagicMock(), MagicMock()])
        repo = FirestoreDocumentRepository(client)

        assert asyncio.run(repo.count_by_organization(4)) == 2
        client.collection.return_value.where.assert_called_with("organization_id", "==", 4)


# =============================================================================
# Factory
# =============================================================================

class TestBuildDocumentRepository:

    def test_none_backend_is_degraded(self):
        assert build_document_repository(Settings(database_url="sqlite://", document_backend="none")) is None

    def test_file_backend(self, tmp_path):
        settings = Settings(
            database_url="sqlite://",
            document_backend="file",
            document_store_dir=tmp_path,
            document_collection="drafts",
        )
        repo = build_document_repository(settings)
        assert isinstance(repo, FileDocumentRepository)
        assert repo.path == tmp_path / "drafts.jsonl"

    def test_unavailable_firestore_falls_back_to_degraded(self, monkeypatch):
        def fail(project, credentials_path):
            raise FileNotFoundError(credentials_path)

        monkeypatch.setattr(documents_module, "firestore_client", fail)
        settings = Settings(database_url="sqlite://", firebase_credentials=Path("missing.json"))
        assert build_document_repository(settings) is None

    def test_firestore_backend_uses_configured_project(self, monkeypatch, tmp_path):
        client = MagicMock()
        factory = MagicMock(return_value=client)
        monkeypatch.setattr(documents_module, "firestore_client", factory)
        settings = Settings(
            database_url="sqlite://",
            store_timeout=2.5,
            firestore_project="proposals-prod",
            firebase_credentials=tmp_path / "service-account.json",
        )

        repo = build_document_repository(settings)

        assert isinstance(repo, FirestoreDocumentRepository)
        assert repo.client is client
        assert repo.timeout == 2.5
        factory.assert_called_once_with("proposals-prod", str(tmp_path / "service-account.json"))


# =============================================================================
# Store-call guard
# =============================================================================

class TestRunStoreCall:

    def test_timeout_is_retryable(self):
        with pytest.raises(StoreUnavailableError) as exc_info:
            asyncio.run(
                run_store_call("relational", time.sleep, 0.3, timeout=0.05, operation="get_by_id")
            )
        assert exc_info.value.retryable is True
        assert exc_info.value.operation == "get_by_id"

    def test_timed_out_call_is_still_tracked(self):
        async def scenario():
            with pytest.raises(StoreUnavailableError) as exc_info:
                await run_store_call("document", time.sleep, 0.2, timeout=0.05, operation="upsert")
            pending = exc_info.value.pending
            assert pending is not None
            assert not pending.done()
            await pending
            return pending

        assert asyncio.run(scenario()).done()

    def test_connection_errors_are_retryable(self):
        def refuse():
            raise ConnectionRefusedError("refused")

        with pytest.raises(StoreUnavailableError) as exc_info:
            asyncio.run(run_store_call("document", refuse, timeout=1, operation="upsert"))
        assert exc_info.value.retryable is True

    def test_other_io_errors_are_not_retryable(self):
        def disk_full():
            raise OSError("disk full")

        with pytest.raises(StoreUnavailableError) as exc_info:
            asyncio.run(run_store_call("document", disk_full, timeout=1, operation="upsert"))
        assert exc_info.value.retryable is False

    def test_unlisted_errors_propagate_unchanged(self):
        def bug():
            raise KeyError("oops")

        with pytest.raises(KeyError):
            asyncio.run(run_store_call("document", bug, timeout=1, operation="get_by_id"))

    def test_sql_errors_are_wrapped(self):
        engine = create_proposal_engine("sqlite://")  # no schema
        repo = SqlProposalRepository(engine, timeout=1)

        with pytest.raises(StoreUnavailableError) as exc_info:
            asyncio.run(repo.get_by_id(1))

        assert exc_info.value.store == "relational"
        assert exc_info.value.retryable is False
        engine.dispose()
