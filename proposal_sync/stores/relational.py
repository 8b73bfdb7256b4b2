"""Relational proposal store backed by SQLAlchemy Core."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..errors import NotFoundError
from ..models import SyncDirection, SyncOperation, SyncResult
from .base import RELATIONAL_STORE, run_store_call


metadata = MetaData()

proposals_table = Table(
    "proposals",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", Integer, index=True),
    Column("organization_name", String(255)),
    Column("organization_type", String(100)),
    Column("contact_name", String(255)),
    Column("contact_email", String(255)),
    Column("contact_phone", String(50)),
    Column("event_name", String(255)),
    Column("event_venue", Text),
    Column("event_mode", String(20)),
    Column("event_start_date", Date),
    Column("event_end_date", Date),
    Column("target_audience", Text),  # JSON-encoded array
    Column("budget", Numeric(12, 2)),
    Column("proposal_status", String(20), nullable=False, default="draft"),
    Column("admin_comments", Text),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255)),
    Column("organization_id", Integer, index=True),
    Column("organization_name", String(255)),
    Column("is_owner", Boolean, nullable=False, default=False),
)

_WRITABLE_COLUMNS = frozenset(c.name for c in proposals_table.columns if c.name != "id")
_DRIVER_ERRORS = (SQLAlchemyError, OSError)


def _db_now() -> datetime:
    # Columns are naive; store UTC wall time.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_proposal_engine(database_url: str, **kwargs: Any) -> Engine:
    """Create an engine for the proposals database.

    In-memory SQLite gets a single shared connection so worker threads see
    the same database.
    """
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if database_url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:") or ":memory:" in database_url:
            kwargs.setdefault("poolclass", StaticPool)
    else:
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_recycle", 3600)
    return create_engine(database_url, **kwargs)


def init_schema(engine: Engine) -> None:
    """Create the proposals and users tables if they do not exist."""
    metadata.create_all(engine)


class SqlProposalRepository:
    """Proposal CRUD by numeric id.

    All calls run in a worker thread under the configured timeout and raise
    ``StoreUnavailableError`` on driver failures.
    """

    def __init__(self, engine: Engine, *, timeout: Optional[float] = None) -> None:
        self.engine = engine
        self.timeout = timeout

    async def _call(self, operation: str, func, *args):
        return await run_store_call(
            RELATIONAL_STORE,
            func,
            *args,
            timeout=self.timeout,
            operation=operation,
            errors=_DRIVER_ERRORS,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_by_id(self, proposal_id: int) -> Optional[Dict[str, Any]]:
        return await self._call("get_by_id", self._get_by_id, proposal_id)

    async def update_fields(self, proposal_id: int, fields: Dict[str, Any]) -> SyncResult:
        """Apply a partial update and stamp ``updated_at``.

        Raises:
            NotFoundError: if no row has this id.
        """
        values = {k: v for k, v in fields.items() if k in _WRITABLE_COLUMNS}
        updated = await self._call("update_fields", self._update, proposal_id, values)
        if not updated:
            raise NotFoundError(RELATIONAL_STORE, proposal_id)
        return SyncResult(
            operation=SyncOperation.UPDATE,
            proposal_id=proposal_id,
            direction=SyncDirection.DOCUMENT_TO_RELATIONAL,
            changed_fields=sorted(k for k in values if k != "updated_at"),
        )

    async def insert(self, fields: Dict[str, Any]) -> int:
        """Insert a new proposal and return the id the database assigned."""
        values = {k: v for k, v in fields.items() if k in _WRITABLE_COLUMNS}
        return await self._call("insert", self._insert, values)

    async def list_by_organization(self, organization_id: int) -> List[Dict[str, Any]]:
        return await self._call("list_by_organization", self._list_by_organization, organization_id)

    async def count_by_organization(self, organization_id: int) -> int:
        return await self._call("count_by_organization", self._count_by_organization, organization_id)

    async def latest_organization_name(self, organization_id: int) -> Optional[str]:
        return await self._call("latest_organization_name", self._latest_organization_name, organization_id)

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def _get_by_id(self, proposal_id: int) -> Optional[Dict[str, Any]]:
        stmt = select(proposals_table).where(proposals_table.c.id == proposal_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return dict(row._mapping) if row is not None else None

    def _update(self, proposal_id: int, values: Dict[str, Any]) -> bool:
        values = dict(values)
        values["updated_at"] = _db_now()
        stmt = update(proposals_table).where(proposals_table.c.id == proposal_id).values(**values)
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount > 0

    def _insert(self, values: Dict[str, Any]) -> int:
        now = _db_now()
        values = dict(values)
        values.setdefault("proposal_status", "draft")
        values.setdefault("created_at", now)
        values["updated_at"] = now
        with self.engine.begin() as conn:
            result = conn.execute(insert(proposals_table).values(**values))
        return int(result.inserted_primary_key[0])

    def _list_by_organization(self, organization_id: int) -> List[Dict[str, Any]]:
        stmt = (
            select(proposals_table)
            .where(proposals_table.c.organization_id == organization_id)
            .order_by(proposals_table.c.id)
        )
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]

    def _count_by_organization(self, organization_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(proposals_table)
            .where(proposals_table.c.organization_id == organization_id)
        )
        with self.engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def _latest_organization_name(self, organization_id: int) -> Optional[str]:
        stmt = (
            select(proposals_table.c.organization_name)
            .where(proposals_table.c.organization_id == organization_id)
            .where(proposals_table.c.organization_name.is_not(None))
            .order_by(proposals_table.c.created_at.desc(), proposals_table.c.id.desc())
            .limit(1)
        )
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar_one_or_none()


class SqlOrganizationDirectory:
    """Looks up the owner profile's organization name in the users table."""

    def __init__(self, engine: Engine, *, timeout: Optional[float] = None) -> None:
        self.engine = engine
        self.timeout = timeout

    async def owner_organization_name(self, organization_id: int) -> Optional[str]:
        return await run_store_call(
            RELATIONAL_STORE,
            self._owner_name,
            organization_id,
            timeout=self.timeout,
            operation="owner_organization_name",
            errors=_DRIVER_ERRORS,
        )

    def _owner_name(self, organization_id: int) -> Optional[str]:
        stmt = (
            select(users_table.c.organization_name)
            .where(users_table.c.organization_id == organization_id)
            .where(users_table.c.is_owner)
            .order_by(users_table.c.id)
            .limit(1)
        )
        with self.engine.connect() as conn:
            name = conn.execute(stmt).scalar_one_or_none()
        return name or None
