"""Relational-wins conflict resolution."""
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Tuple

from ..models import FieldDifference, ResolutionRecord, ResolvedField, sync_timestamp


class ConflictResolver:
    """Overwrites document values with relational values, field by field.

    The relational store owns workflow transitions (approval, rejection), so a
    stale document read must never win. There is no timestamp or per-field
    authority override.
    """

    strategy = "relational-wins"

    def resolve(
        self,
        proposal_id: int,
        differences: Iterable[FieldDifference],
        document: Mapping[str, Any],
        relational_fields: Iterable[str],
    ) -> Tuple[Dict[str, Any], ResolutionRecord]:
        """Apply the differences to a copy of the document.

        Args:
            proposal_id: Relational id of the record.
            differences: Output of DifferenceDetector.compare.
            document: Current document-store record.
            relational_fields: Keys present on the relational side; a
                differing field absent there is removed from the document.

        Returns:
            (resolved document, resolution record)
        """
        present = set(relational_fields)
        resolved = dict(document)
        record = ResolutionRecord(proposal_id=proposal_id, strategy=self.strategy)

        for difference in sorted(differences, key=lambda d: d.field):
            if difference.field in present:
                resolved[difference.field] = difference.relational_value
            else:
                resolved.pop(difference.field, None)
            record.resolved_fields.append(
                ResolvedField(
                    field=difference.field,
                    old_value=difference.document_value,
                    new_value=difference.relational_value,
                )
            )

        if record.resolved_fields:
            resolved["lastConflictResolution"] = sync_timestamp()
        return resolved, record
