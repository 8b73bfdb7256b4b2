"""Document-side proposal store.

Two backends share one contract:
- Firestore: collection ``proposals``, document id == ``proposalId``
- File: ``<dir>/<collection>.jsonl``, one document per line

The file backend follows the local-fallback layout used by the rest of the
project and is what tests and local development run against.
"""
from __future__ import annotations

import json
import logging
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions

from ..config import Settings
from ..models import SyncDirection, SyncOperation, SyncResult
from .base import DOCUMENT_STORE, DocumentRepository, run_store_call

logger = logging.getLogger(__name__)

DEFAULT_STORE_DIR = Path(__file__).resolve().parents[2] / "document_store"


def _proposal_id_of(document: Dict[str, Any], fallback: str) -> int:
    try:
        return int(document.get("proposalId", fallback))
    except (TypeError, ValueError):
        return int(fallback)


# =============================================================================
# Firestore Storage
# =============================================================================

class FirestoreDocumentRepository:
    """Proposal documents in a Firestore collection."""

    _errors = (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, OSError)

    def __init__(
        self,
        client: Any,
        *,
        collection: str = "proposals",
        timeout: Optional[float] = None,
    ) -> None:
        self.client = client
        self.collection = collection
        self.timeout = timeout

    async def _call(self, operation: str, func, *args):
        return await run_store_call(
            DOCUMENT_STORE,
            func,
            *args,
            timeout=self.timeout,
            operation=operation,
            errors=self._errors,
        )

    async def get_by_id(self, proposal_id: str) -> Optional[Dict[str, Any]]:
        return await self._call("get_by_id", self._get, str(proposal_id))

    async def upsert(self, proposal_id: str, document: Dict[str, Any]) -> SyncResult:
        """Write the full document, replacing any existing one."""
        proposal_id = str(proposal_id)
        existed = await self._call("upsert", self._set, proposal_id, dict(document))
        return SyncResult(
            operation=SyncOperation.UPDATE if existed else SyncOperation.INSERT,
            proposal_id=_proposal_id_of(document, proposal_id),
            direction=SyncDirection.RELATIONAL_TO_DOCUMENT,
        )

    async def count_by_organization(self, organization_id: int) -> int:
        return await self._call("count_by_organization", self._count, organization_id)

    def _get(self, proposal_id: str) -> Optional[Dict[str, Any]]:
        doc = self.client.collection(self.collection).document(proposal_id).get()
        if doc.exists:
            return doc.to_dict()
        return None

    def _set(self, proposal_id: str, document: Dict[str, Any]) -> bool:
        doc_ref = self.client.collection(self.collection).document(proposal_id)
        existed = doc_ref.get().exists
        doc_ref.set(document)
        return existed

    def _count(self, organization_id: int) -> int:
        query = self.client.collection(self.collection).where("organization_id", "==", organization_id)
        return sum(1 for _ in query.stream())


# =============================================================================
# File Storage
# =============================================================================

class FileDocumentRepository:
    """Proposal documents in a JSONL file (local development and tests)."""

    def __init__(
        self,
        directory: Optional[Path] = None,
        *,
        collection: str = "proposals",
        timeout: Optional[float] = None,
    ) -> None:
        self.directory = Path(directory) if directory else DEFAULT_STORE_DIR
        self.collection = collection
        self.timeout = timeout
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self.directory / f"{self.collection}.jsonl"

    async def _call(self, operation: str, func, *args):
        return await run_store_call(
            DOCUMENT_STORE,
            func,
            *args,
            timeout=self.timeout,
            operation=operation,
        )

    async def get_by_id(self, proposal_id: str) -> Optional[Dict[str, Any]]:
        return await self._call("get_by_id", self._get, str(proposal_id))

    async def upsert(self, proposal_id: str, document: Dict[str, Any]) -> SyncResult:
        """Write the full document, replacing any existing one."""
        proposal_id = str(proposal_id)
        existed = await self._call("upsert", self._save, proposal_id, dict(document))
        return SyncResult(
            operation=SyncOperation.UPDATE if existed else SyncOperation.INSERT,
            proposal_id=_proposal_id_of(document, proposal_id),
            direction=SyncDirection.RELATIONAL_TO_DOCUMENT,
        )

    async def count_by_organization(self, organization_id: int) -> int:
        return await self._call("count_by_organization", self._count, organization_id)

    def _read_all(self) -> Dict[str, Dict[str, Any]]:
        documents: Dict[str, Dict[str, Any]] = {}
        if not self.path.exists():
            return documents
        with self.path.open("r", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("[DocStore] Skipping unreadable line %s in %s", line_no, self.path)
                    continue
                key = data.get("proposalId")
                if key is not None:
                    documents[str(key)] = data
        return documents

    def _get(self, proposal_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._read_all().get(proposal_id)

    def _save(self, proposal_id: str, document: Dict[str, Any]) -> bool:
        with self._lock:
            documents = self._read_all()
            existed = proposal_id in documents
            documents[proposal_id] = document
            self.directory.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as handle:
                for data in documents.values():
                    handle.write(json.dumps(data, default=str) + "\n")
        return existed

    def _count(self, organization_id: int) -> int:
        with self._lock:
            documents = self._read_all().values()
        return sum(1 for d in documents if d.get("organization_id") == organization_id)


# =============================================================================
# Factory
# =============================================================================

@lru_cache(maxsize=None)
def firestore_client(project: Optional[str] = None, credentials_path: Optional[str] = None) -> Any:
    """Return a Firestore client, initializing the default firebase-admin app once.

    Without a credentials file the app falls back to application default
    credentials; without a project the environment's default project is used.
    """
    import firebase_admin
    from firebase_admin import credentials, firestore

    try:
        app = firebase_admin.get_app()
    except ValueError:
        credential = credentials.Certificate(credentials_path) if credentials_path else None
        options = {"projectId": project} if project else None
        app = firebase_admin.initialize_app(credential, options)
        logger.info("[DocStore] Initialized firebase-admin for project %s", project or "<default>")
    return firestore.client(app)


def build_document_repository(settings: Settings) -> Optional[DocumentRepository]:
    """Return the configured document repository, or None for degraded mode.

    A Firestore backend that cannot be initialized (missing package or
    credentials) yields None with a warning instead of a half-working store.
    """
    if settings.document_backend == "none":
        logger.info("[DocStore] Document store disabled; sync runs in degraded mode")
        return None

    if settings.document_backend == "file":
        return FileDocumentRepository(
            settings.document_store_dir,
            collection=settings.document_collection,
            timeout=settings.store_timeout,
        )

    credentials_path = str(settings.firebase_credentials) if settings.firebase_credentials else None
    try:
        client = firestore_client(settings.firestore_project, credentials_path)
    except (ImportError, OSError, ValueError, auth_exceptions.GoogleAuthError) as exc:
        logger.warning("[DocStore] Firestore unavailable, running in degraded mode: %s", exc)
        return None

    return FirestoreDocumentRepository(
        client,
        collection=settings.document_collection,
        timeout=settings.store_timeout,
    )
