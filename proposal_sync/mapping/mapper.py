"""Translate proposal records between relational rows and documents."""
from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from ..errors import MappingError
from .fields import (
    BY_COLUMN,
    BY_DOCUMENT_FIELD,
    IDENTITY_SPEC,
    FieldKind,
    FieldSpec,
)


# =============================================================================
# Coercion helpers
# =============================================================================

def _to_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise MappingError(name, value, "expected an integer, got a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise MappingError(name, value, "expected an integer") from exc
    raise MappingError(name, value, "expected an integer")


def _parse_datetime(name: str, value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise MappingError(name, value, "not an ISO-8601 timestamp") from exc


def _to_date(name: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            try:
                return date.fromisoformat(text)
            except ValueError as exc:
                raise MappingError(name, value, "not an ISO date") from exc
        return _parse_datetime(name, text).date()
    raise MappingError(name, value, "expected a date")


def _to_datetime(name: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return _parse_datetime(name, value)
    raise MappingError(name, value, "expected a timestamp")


def _to_list(name: str, value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, (str, bytes)):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError as exc:
            raise MappingError(name, value, "malformed JSON array") from exc
        if not isinstance(decoded, list):
            raise MappingError(name, value, "JSON value is not an array")
        return decoded
    raise MappingError(name, value, "expected an array")


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise MappingError(name, value, "expected a decimal, got a boolean")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise MappingError(name, value, "not a decimal number") from exc
        if not result.is_finite():
            raise MappingError(name, value, "decimal must be finite")
        return result
    raise MappingError(name, value, "expected a decimal")


def _document_value(spec: FieldSpec, value: Any) -> Any:
    name = spec.column
    kind = spec.kind
    if kind is FieldKind.IDENTITY:
        return str(_to_int(name, value))
    if kind is FieldKind.INTEGER:
        return _to_int(name, value)
    if kind is FieldKind.DATE:
        return _to_date(name, value).isoformat()
    if kind is FieldKind.DATETIME:
        return _to_datetime(name, value).isoformat()
    if kind is FieldKind.JSON_ARRAY:
        return _to_list(name, value)
    if kind is FieldKind.DECIMAL:
        return float(_to_decimal(name, value))
    return value


def _relational_value(spec: FieldSpec, value: Any) -> Any:
    name = spec.document_field
    kind = spec.kind
    if kind in (FieldKind.IDENTITY, FieldKind.INTEGER):
        return _to_int(name, value)
    if kind is FieldKind.DATE:
        return _to_date(name, value)
    if kind is FieldKind.DATETIME:
        return _to_datetime(name, value)
    if kind is FieldKind.JSON_ARRAY:
        return json.dumps(_to_list(name, value))
    if kind is FieldKind.DECIMAL:
        return _to_decimal(name, value)
    return value


# =============================================================================
# Mapper
# =============================================================================

class FieldMapper:
    """Bidirectional, total mapping over the proposal field table.

    Known fields are renamed and coerced; unknown fields are passed through
    unchanged so newer columns or document attributes survive a round trip.
    ``None`` always maps to ``None``.
    """

    def __init__(
        self,
        by_column: Optional[Mapping[str, FieldSpec]] = None,
        by_document_field: Optional[Mapping[str, FieldSpec]] = None,
    ) -> None:
        self._by_column = dict(by_column or BY_COLUMN)
        self._by_document_field = dict(by_document_field or BY_DOCUMENT_FIELD)

    def to_document(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Map a relational row to the document shape.

        Raises:
            MappingError: if a stored value cannot be coerced.
        """
        return self._translate(row, self._by_column, lambda s: s.document_field, _document_value)

    def to_relational(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        """Map a document to the relational column shape.

        Raises:
            MappingError: if a stored value cannot be coerced.
        """
        return self._translate(document, self._by_document_field, lambda s: s.column, _relational_value)

    def to_relational_subset(
        self,
        document: Mapping[str, Any],
        document_fields: Iterable[str],
    ) -> Dict[str, Any]:
        """Map only the named document fields to relational columns.

        Fields the document does not carry are left out rather than nulled,
        and values outside the subset are never coerced.
        """
        subset = {name: document[name] for name in document_fields if name in document}
        return self.to_relational(subset)

    @staticmethod
    def document_id(proposal_id: Any) -> str:
        """Return the document-store id for a relational id."""
        return str(_to_int(IDENTITY_SPEC.column, proposal_id))

    @staticmethod
    def _translate(
        source: Mapping[str, Any],
        specs: Mapping[str, FieldSpec],
        target_name: Callable[[FieldSpec], str],
        coerce: Callable[[FieldSpec, Any], Any],
    ) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for name, value in source.items():
            spec = specs.get(name)
            if spec is None:
                result[name] = value
                continue
            result[target_name(spec)] = None if value is None else coerce(spec, value)
        return result
