"""Field mapping between relational proposal rows and documents."""
from __future__ import annotations

from .fields import (
    ALLOWLISTED_COLUMNS,
    ALLOWLISTED_DOCUMENT_FIELDS,
    FIELD_TABLE,
    PROMOTION_DOCUMENT_FIELDS,
    RELATIONAL_SYNC_ALLOWLIST,
    SYNC_METADATA_FIELDS,
    FieldKind,
    FieldSpec,
    ProposalField,
    validate_field_table,
)
from .mapper import FieldMapper

__all__ = [
    "ALLOWLISTED_COLUMNS",
    "ALLOWLISTED_DOCUMENT_FIELDS",
    "FIELD_TABLE",
    "PROMOTION_DOCUMENT_FIELDS",
    "RELATIONAL_SYNC_ALLOWLIST",
    "SYNC_METADATA_FIELDS",
    "FieldKind",
    "FieldMapper",
    "FieldSpec",
    "ProposalField",
    "validate_field_table",
]
