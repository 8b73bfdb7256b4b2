"""Configuration helpers for proposal sync."""
from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DOCUMENT_BACKENDS = ("firestore", "file", "none")
DEFAULT_STORE_TIMEOUT = 10.0


class ConfigError(RuntimeError):
    """Raised when required configuration is missing."""


@dataclass(slots=True)
class Settings:
    """Runtime configuration for the sync service."""

    database_url: str
    document_backend: str = "firestore"
    document_collection: str = "proposals"
    document_store_dir: Optional[Path] = None
    store_timeout: float = DEFAULT_STORE_TIMEOUT
    sync_log_path: Optional[Path] = None
    environment: str = "local"
    firestore_project: Optional[str] = None
    firebase_credentials: Optional[Path] = None

    @property
    def document_store_enabled(self) -> bool:
        return self.document_backend != "none"


def load_settings(
    *,
    database_var: str = "PSYNC_DATABASE_URL",
    fallback_database_var: Optional[str] = "DATABASE_URL",
    env_file: Optional[str] = None,
) -> Settings:
    """Load settings from environment variables.

    A ``.env`` file is read first when present; variables already exported
    in the environment win.

    Args:
        database_var: Primary env var name for the relational database URL.
        fallback_database_var: Optional alternate env var for the URL.
        env_file: Explicit dotenv path (defaults to ``.env`` lookup).

    Returns:
        Settings with the resolved values.

    Raises:
        ConfigError: if the database URL is missing or a value is invalid.
    """

    load_dotenv(env_file)

    database_url = os.getenv(database_var)
    if not database_url and fallback_database_var:
        database_url = os.getenv(fallback_database_var)

    if not database_url:
        raise ConfigError(
            "Missing relational database URL. Export PSYNC_DATABASE_URL "
            "(or DATABASE_URL)."
        )

    backend = os.getenv("PSYNC_DOCUMENT_BACKEND", "firestore").strip().lower()
    if backend not in DOCUMENT_BACKENDS:
        raise ConfigError(
            f"Unsupported PSYNC_DOCUMENT_BACKEND '{backend}'. "
            f"Expected one of: {', '.join(DOCUMENT_BACKENDS)}"
        )

    raw_timeout = os.getenv("PSYNC_STORE_TIMEOUT", str(DEFAULT_STORE_TIMEOUT))
    try:
        store_timeout = float(raw_timeout)
    except ValueError as exc:
        raise ConfigError(f"PSYNC_STORE_TIMEOUT must be a number, got '{raw_timeout}'") from exc
    if store_timeout <= 0:
        raise ConfigError("PSYNC_STORE_TIMEOUT must be positive")

    store_dir = os.getenv("PSYNC_DOCUMENT_STORE_DIR", "").strip()
    log_path = os.getenv("PSYNC_SYNC_LOG", "").strip()
    project = os.getenv("PSYNC_FIRESTORE_PROJECT") or os.getenv("GOOGLE_CLOUD_PROJECT") or ""
    credentials_path = os.getenv("PSYNC_FIREBASE_CREDENTIALS", "").strip()

    return Settings(
        database_url=database_url.strip(),
        document_backend=backend,
        document_collection=os.getenv("PSYNC_DOCUMENT_COLLECTION", "proposals").strip() or "proposals",
        document_store_dir=Path(store_dir) if store_dir else None,
        store_timeout=store_timeout,
        sync_log_path=Path(log_path) if log_path else None,
        environment=os.getenv("PSYNC_ENV", "local"),
        firestore_project=project.strip() or None,
        firebase_credentials=Path(credentials_path) if credentials_path else None,
    )
