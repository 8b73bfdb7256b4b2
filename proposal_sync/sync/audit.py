"""Organization-level proposal consistency audit.

The audit only reports. Fixing a mismatch is left to the caller, usually by
running a batch sync or an orphan scan followed by promotion.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from ..errors import ValidationError
from ..models import NameMismatch, OrganizationAuditSummary
from ..stores.base import DocumentRepository, OrganizationDirectory, RelationalRepository

logger = logging.getLogger(__name__)

DEFAULT_ORGANIZATION_NAME = "Unknown Organization"

NAME_SOURCE_OWNER_PROFILE = "owner_profile"
NAME_SOURCE_LATEST_PROPOSAL = "latest_proposal"
NAME_SOURCE_DEFAULT = "default"


def _validate_organization_id(organization_id: Any) -> int:
    if isinstance(organization_id, bool):
        raise ValidationError([f"organization_id must be a positive integer, got {organization_id!r}"])
    if isinstance(organization_id, str) and organization_id.strip().isdecimal():
        organization_id = int(organization_id.strip())
    if not isinstance(organization_id, int) or organization_id <= 0:
        raise ValidationError([f"organization_id must be a positive integer, got {organization_id!r}"])
    return organization_id


class OrganizationAuditor:
    """Cross-store consistency summary for one organization."""

    def __init__(
        self,
        relational: RelationalRepository,
        documents: Optional[DocumentRepository],
        directory: OrganizationDirectory,
        *,
        default_name: str = DEFAULT_ORGANIZATION_NAME,
    ) -> None:
        self.relational = relational
        self.documents = documents
        self.directory = directory
        self.default_name = default_name

    async def resolve_organization_name(self, organization_id: Any) -> Tuple[str, str]:
        """Resolve the canonical organization name and where it came from.

        Lookup order: owner profile, most recent proposal, fixed default.

        Returns:
            (name, source) where source is ``owner_profile``,
            ``latest_proposal`` or ``default``.
        """
        org_id = _validate_organization_id(organization_id)

        name = await self.directory.owner_organization_name(org_id)
        if name and name.strip():
            return name.strip(), NAME_SOURCE_OWNER_PROFILE

        name = await self.relational.latest_organization_name(org_id)
        if name and name.strip():
            return name.strip(), NAME_SOURCE_LATEST_PROPOSAL

        logger.info("[AUDIT] No organization name on record for %s; using default", org_id)
        return self.default_name, NAME_SOURCE_DEFAULT

    async def get_organization_name(self, organization_id: Any) -> str:
        name, _ = await self.resolve_organization_name(organization_id)
        return name

    async def ensure_proposal_consistency(self, organization_id: Any) -> OrganizationAuditSummary:
        """Compare an organization's proposals across both stores.

        Flags a relational/document count mismatch and every relational
        proposal whose stored organization name differs from the canonical
        one, and attaches human-readable recommendations.

        Raises:
            ValidationError: for an invalid organization id.
            StoreUnavailableError: if a store cannot be read.
        """
        org_id = _validate_organization_id(organization_id)
        name, source = await self.resolve_organization_name(org_id)

        relational_count = await self.relational.count_by_organization(org_id)
        rows = await self.relational.list_by_organization(org_id)
        mismatches = [
            NameMismatch(proposal_id=row["id"], stored_name=row.get("organization_name"))
            for row in rows
            if (row.get("organization_name") or "").strip() != name
        ]

        degraded = self.documents is None
        document_count = 0 if degraded else await self.documents.count_by_organization(org_id)

        summary = OrganizationAuditSummary(
            organization_id=org_id,
            organization_name=name,
            name_source=source,
            relational_count=relational_count,
            document_count=document_count,
            mismatched_names=mismatches,
            degraded=degraded,
        )
        summary.recommendations = self._recommendations(summary)

        logger.info(
            "[AUDIT] Organization %s: relational=%s document=%s name_mismatches=%s consistent=%s",
            org_id,
            relational_count,
            document_count,
            len(mismatches),
            summary.consistent,
        )
        return summary

    def _recommendations(self, summary: OrganizationAuditSummary) -> List[str]:
        org_id = summary.organization_id
        recommendations: List[str] = []

        if summary.degraded:
            recommendations.append(
                "Document store is not configured; configure it to compare document counts."
            )
        elif summary.relational_count > summary.document_count:
            missing = summary.relational_count - summary.document_count
            recommendations.append(
                f"{missing} proposal(s) for organization {org_id} have no document mirror; "
                "run a batch sync from the relational store."
            )
        elif summary.document_count > summary.relational_count:
            extra = summary.document_count - summary.relational_count
            recommendations.append(
                f"{extra} document(s) for organization {org_id} have no relational row; "
                "run an orphan scan and promote or remove them."
            )

        if summary.mismatched_names:
            ids = ", ".join(str(m.proposal_id) for m in summary.mismatched_names)
            recommendations.append(
                f"Proposal(s) {ids} store an organization name other than "
                f"'{summary.organization_name}'; update them to the canonical name."
            )

        if summary.name_source == NAME_SOURCE_DEFAULT:
            recommendations.append(
                f"No organization name is recorded for organization {org_id}; "
                "set it on the owner profile."
            )

        if not recommendations:
            recommendations.append("Proposal data is consistent; no action needed.")
        return recommendations
