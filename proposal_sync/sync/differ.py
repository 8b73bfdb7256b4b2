"""Field-by-field comparison of two proposal representations."""
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from ..mapping import SYNC_METADATA_FIELDS
from ..models import FieldDifference


def values_equal(a: Any, b: Any) -> bool:
    """Strict equality: same type and equal value.

    Lists and dicts compare by content, so callers must pass both sides in
    the same normalized shape (the FieldMapper document form).
    """
    if a is None or b is None:
        return a is b
    return type(a) is type(b) and a == b


class DifferenceDetector:
    """Compares two flat records over the union of their keys."""

    def __init__(self, ignore_fields: Optional[Iterable[str]] = None) -> None:
        self.ignore_fields = frozenset(SYNC_METADATA_FIELDS if ignore_fields is None else ignore_fields)

    def compare(
        self,
        relational: Mapping[str, Any],
        document: Mapping[str, Any],
        ignore_fields: Optional[Iterable[str]] = None,
    ) -> List[FieldDifference]:
        """Return one FieldDifference per unequal field, in key order.

        A key missing on one side compares as None.
        """
        ignored = self.ignore_fields if ignore_fields is None else frozenset(ignore_fields)
        keys = sorted((set(relational) | set(document)) - ignored)
        differences: List[FieldDifference] = []
        for key in keys:
            relational_value = relational.get(key)
            document_value = document.get(key)
            if not values_equal(relational_value, document_value):
                differences.append(FieldDifference(key, relational_value, document_value))
        return differences
