"""Relational <-> document field table for proposal records.

The table is the single place that knows how a proposal column is named and
typed on each side. ``validate_field_table`` runs at import so a broken edit
fails fast instead of producing half-mapped records at sync time.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Tuple


class FieldKind(str, Enum):
    """How a field is coerced between stores."""

    IDENTITY = "identity"  # int primary key <-> string proposalId
    INTEGER = "integer"
    TEXT = "text"
    DATE = "date"
    DATETIME = "datetime"
    JSON_ARRAY = "json_array"
    DECIMAL = "decimal"


class ProposalField(str, Enum):
    """Every proposal field the sync engine knows about."""

    ID = "id"
    ORGANIZATION_ID = "organization_id"
    ORGANIZATION_NAME = "organization_name"
    ORGANIZATION_TYPE = "organization_type"
    CONTACT_NAME = "contact_name"
    CONTACT_EMAIL = "contact_email"
    CONTACT_PHONE = "contact_phone"
    EVENT_NAME = "event_name"
    EVENT_VENUE = "event_venue"
    EVENT_MODE = "event_mode"
    EVENT_START_DATE = "event_start_date"
    EVENT_END_DATE = "event_end_date"
    TARGET_AUDIENCE = "target_audience"
    BUDGET = "budget"
    PROPOSAL_STATUS = "proposal_status"
    ADMIN_COMMENTS = "admin_comments"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


@dataclass(slots=True, frozen=True)
class FieldSpec:
    key: ProposalField
    column: str
    document_field: str
    kind: FieldKind


FIELD_TABLE: Tuple[FieldSpec, ...] = (
    FieldSpec(ProposalField.ID, "id", "proposalId", FieldKind.IDENTITY),
    FieldSpec(ProposalField.ORGANIZATION_ID, "organization_id", "organization_id", FieldKind.INTEGER),
    FieldSpec(ProposalField.ORGANIZATION_NAME, "organization_name", "organization_name", FieldKind.TEXT),
    FieldSpec(ProposalField.ORGANIZATION_TYPE, "organization_type", "organization_type", FieldKind.TEXT),
    FieldSpec(ProposalField.CONTACT_NAME, "contact_name", "contact_name", FieldKind.TEXT),
    FieldSpec(ProposalField.CONTACT_EMAIL, "contact_email", "contact_email", FieldKind.TEXT),
    FieldSpec(ProposalField.CONTACT_PHONE, "contact_phone", "contact_phone", FieldKind.TEXT),
    FieldSpec(ProposalField.EVENT_NAME, "event_name", "event_name", FieldKind.TEXT),
    FieldSpec(ProposalField.EVENT_VENUE, "event_venue", "event_venue", FieldKind.TEXT),
    FieldSpec(ProposalField.EVENT_MODE, "event_mode", "event_mode", FieldKind.TEXT),
    FieldSpec(ProposalField.EVENT_START_DATE, "event_start_date", "event_start_date", FieldKind.DATE),
    FieldSpec(ProposalField.EVENT_END_DATE, "event_end_date", "event_end_date", FieldKind.DATE),
    FieldSpec(ProposalField.TARGET_AUDIENCE, "target_audience", "target_audience", FieldKind.JSON_ARRAY),
    FieldSpec(ProposalField.BUDGET, "budget", "budget", FieldKind.DECIMAL),
    FieldSpec(ProposalField.PROPOSAL_STATUS, "proposal_status", "proposal_status", FieldKind.TEXT),
    FieldSpec(ProposalField.ADMIN_COMMENTS, "admin_comments", "admin_comments", FieldKind.TEXT),
    FieldSpec(ProposalField.CREATED_AT, "created_at", "created_at", FieldKind.DATETIME),
    FieldSpec(ProposalField.UPDATED_AT, "updated_at", "updated_at", FieldKind.DATETIME),
)

# Fields a document may push into an existing relational row. Workflow state
# (status, reviewer comments), identity and timestamps stay relational-owned.
RELATIONAL_SYNC_ALLOWLIST: Tuple[ProposalField, ...] = (
    ProposalField.ORGANIZATION_NAME,
    ProposalField.ORGANIZATION_TYPE,
    ProposalField.CONTACT_NAME,
    ProposalField.CONTACT_EMAIL,
    ProposalField.CONTACT_PHONE,
    ProposalField.EVENT_NAME,
    ProposalField.EVENT_VENUE,
    ProposalField.EVENT_MODE,
    ProposalField.EVENT_START_DATE,
    ProposalField.EVENT_END_DATE,
    ProposalField.TARGET_AUDIENCE,
    ProposalField.BUDGET,
)

# Sync bookkeeping stamped on documents; never part of a comparison.
SYNC_METADATA_FIELDS: FrozenSet[str] = frozenset(
    {
        "lastSyncedFromRelational",
        "lastConflictResolution",
        "promotedFrom",
    }
)


def validate_field_table(
    table: Tuple[FieldSpec, ...] = FIELD_TABLE,
    allowlist: Tuple[ProposalField, ...] = RELATIONAL_SYNC_ALLOWLIST,
) -> None:
    """Check the field table is exhaustive and unambiguous.

    Raises:
        ValueError: if a ProposalField is missing or duplicated, a column or
            document name is reused, or the allowlist names an unmapped or
            workflow-owned field.
    """
    keys = [spec.key for spec in table]
    missing = [f.value for f in ProposalField if f not in keys]
    if missing:
        raise ValueError(f"Field table is missing: {', '.join(missing)}")
    if len(set(keys)) != len(keys):
        raise ValueError("Field table lists a ProposalField more than once")

    columns = [spec.column for spec in table]
    documents = [spec.document_field for spec in table]
    if len(set(columns)) != len(columns):
        raise ValueError("Field table reuses a relational column name")
    if len(set(documents)) != len(documents):
        raise ValueError("Field table reuses a document field name")

    identity = [spec for spec in table if spec.kind is FieldKind.IDENTITY]
    if len(identity) != 1:
        raise ValueError("Field table needs exactly one identity field")

    forbidden = {ProposalField.ID, ProposalField.PROPOSAL_STATUS}
    for key in allowlist:
        if key not in keys:
            raise ValueError(f"Allowlisted field '{key.value}' is not mapped")
        if key in forbidden:
            raise ValueError(f"Field '{key.value}' must never be written from documents")

    overlap = SYNC_METADATA_FIELDS.intersection(documents)
    if overlap:
        raise ValueError(f"Sync metadata collides with mapped fields: {', '.join(sorted(overlap))}")


validate_field_table()

BY_COLUMN: Dict[str, FieldSpec] = {spec.column: spec for spec in FIELD_TABLE}
BY_DOCUMENT_FIELD: Dict[str, FieldSpec] = {spec.document_field: spec for spec in FIELD_TABLE}
BY_KEY: Dict[ProposalField, FieldSpec] = {spec.key: spec for spec in FIELD_TABLE}
IDENTITY_SPEC: FieldSpec = BY_KEY[ProposalField.ID]
ALLOWLISTED_COLUMNS: Tuple[str, ...] = tuple(BY_KEY[key].column for key in RELATIONAL_SYNC_ALLOWLIST)
ALLOWLISTED_DOCUMENT_FIELDS: Tuple[str, ...] = tuple(
    BY_KEY[key].document_field for key in RELATIONAL_SYNC_ALLOWLIST
)
# Promotion also carries the owning organization into the new relational row.
PROMOTION_DOCUMENT_FIELDS: Tuple[str, ...] = (
    BY_KEY[ProposalField.ORGANIZATION_ID].document_field,
) + ALLOWLISTED_DOCUMENT_FIELDS
