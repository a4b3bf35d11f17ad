"""
Lead repository (persistence).

Persistence for the Lead aggregate with per-lead single-writer consistency:
every write carries the version the caller read, and a write whose version no
longer matches the stored one fails with ConcurrentUpdateError instead of
overwriting a concurrent change. Committed writes bump `version` by one.

Listing always goes through `list_for_owner`, which applies the identity's
LeadScope here, at the store boundary.

Two implementations share the LeadRepository protocol:
- SupabaseLeadRepository: the `leads` table, version check in the UPDATE filter.
- InMemoryLeadRepository: a dict guarded by a lock, for tests and local runs.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Protocol
from uuid import UUID

from domain.access_policy import lead_scope_for
from domain.errors import ConcurrentUpdateError, InvalidInputError, NotFoundError
from domain.identity import Identity
from domain.lead import Lead, LeadPriority, LeadStatus
from repositories.rows import (
    parse_optional_datetime,
    parse_utc_datetime,
    response_rows,
    to_iso_utc,
)

# Supabase table name for Lead records.
# Keep this aligned with your database schema.
_LEADS_TABLE: str = "leads"


class LeadRepository(Protocol):
    def insert(self, lead: Lead) -> Lead: ...

    def get(self, lead_id: UUID) -> Optional[Lead]: ...

    def list_for_owner(self, identity: Identity, status: Optional[LeadStatus] = None) -> List[Lead]: ...

    def save(self, lead: Lead, expected_version: int) -> Lead: ...

    def delete(self, lead_id: UUID) -> bool: ...


def _check_new(lead: Lead) -> None:
    if lead.version != 1:
        raise InvalidInputError("new leads must start at version 1", field="version")


class InMemoryLeadRepository:
    """Process-local lead store. The compare-and-set in `save` is atomic."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._leads: Dict[UUID, Lead] = {}

    def insert(self, lead: Lead) -> Lead:
        _check_new(lead)
        with self._lock:
            if lead.lead_id in self._leads:
                raise InvalidInputError(f"Lead {lead.lead_id} already exists", field="lead_id")
            self._leads[lead.lead_id] = lead
        return lead

    def get(self, lead_id: UUID) -> Optional[Lead]:
        with self._lock:
            return self._leads.get(lead_id)

    def list_for_owner(self, identity: Identity, status: Optional[LeadStatus] = None) -> List[Lead]:
        scope = lead_scope_for(identity)
        with self._lock:
            leads = list(self._leads.values())
        visible = scope.filter(leads)
        if status is not None:
            visible = [lead for lead in visible if lead.status is status]
        return sorted(visible, key=lambda lead: lead.created_at)

    def save(self, lead: Lead, expected_version: int) -> Lead:
        with self._lock:
            current = self._leads.get(lead.lead_id)
            if current is None:
                raise NotFoundError(f"Lead {lead.lead_id} not found")
            if current.version != expected_version:
                raise ConcurrentUpdateError(
                    f"Lead {lead.lead_id} was modified concurrently "
                    f"(expected version {expected_version}, found {current.version})"
                )
            stored = replace(lead, version=expected_version + 1)
            self._leads[lead.lead_id] = stored
            return stored

    def delete(self, lead_id: UUID) -> bool:
        with self._lock:
            return self._leads.pop(lead_id, None) is not None


def _lead_to_row(lead: Lead) -> dict[str, Any]:
    """Convert a domain Lead to a Supabase row payload."""

    return {
        "lead_id": str(lead.lead_id),
        "patient_id": lead.patient_id,
        "client_id": lead.client_id,
        "source": lead.source,
        "status": lead.status.value,
        "priority": lead.priority.value,
        "created_at_utc": to_iso_utc(lead.created_at, name="created_at"),
        "updated_at_utc": to_iso_utc(lead.updated_at, name="updated_at"),

        # Ownership
        "consultant_id": lead.consultant_id,
        "assigned_consultant_id": lead.assigned_consultant_id,
        "assigned_at_utc": to_iso_utc(lead.assigned_at, name="assigned_at"),

        # Approval tracks
        "prescription_approved": lead.prescription_approved,
        "anvisa_approved": lead.anvisa_approved,
        "prescription_rejection_reason": lead.prescription_rejection_reason,
        "anvisa_rejection_reason": lead.anvisa_rejection_reason,

        # CRM enrichment
        "notes": lead.notes,
        "tags": list(lead.tags),
        "lead_score": lead.lead_score,
        "budget": str(lead.budget) if lead.budget is not None else None,
        "next_follow_up_utc": to_iso_utc(lead.next_follow_up, name="next_follow_up"),
        "products_interest": list(lead.products_interest),
        "referral_source": lead.referral_source,
        "lost_reason": lead.lost_reason,
        "city": lead.city,
        "state": lead.state,

        "version": lead.version,
    }


def _row_to_lead(row: Mapping[str, Any]) -> Lead:
    """Convert a Supabase row into a domain Lead."""

    budget = row.get("budget")
    return Lead(
        lead_id=UUID(str(row["lead_id"])),
        patient_id=str(row["patient_id"]),
        client_id=str(row["client_id"]),
        source=str(row.get("source") or ""),
        status=LeadStatus(str(row["status"])),
        priority=LeadPriority(str(row.get("priority") or LeadPriority.MEDIUM.value)),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        updated_at=parse_utc_datetime(row["updated_at_utc"]),
        consultant_id=row.get("consultant_id"),
        assigned_consultant_id=row.get("assigned_consultant_id"),
        assigned_at=parse_optional_datetime(row.get("assigned_at_utc")),
        prescription_approved=bool(row.get("prescription_approved", False)),
        anvisa_approved=bool(row.get("anvisa_approved", False)),
        prescription_rejection_reason=row.get("prescription_rejection_reason"),
        anvisa_rejection_reason=row.get("anvisa_rejection_reason"),
        notes=row.get("notes"),
        tags=tuple(row.get("tags") or ()),
        lead_score=int(row.get("lead_score") or 0),
        budget=Decimal(str(budget)) if budget is not None else None,
        next_follow_up=parse_optional_datetime(row.get("next_follow_up_utc")),
        products_interest=tuple(row.get("products_interest") or ()),
        referral_source=row.get("referral_source"),
        lost_reason=row.get("lost_reason"),
        city=row.get("city"),
        state=row.get("state"),
        version=int(row.get("version") or 1),
    )


class SupabaseLeadRepository:
    """
    Lead store backed by the Supabase `leads` table.

    The version check is part of the UPDATE filter (`version = expected`), so
    two writers racing on the same lead cannot both succeed: the database
    applies one UPDATE, and the other matches zero rows.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    def insert(self, lead: Lead) -> Lead:
        _check_new(lead)
        response = self._client.table(_LEADS_TABLE).insert(_lead_to_row(lead)).execute()
        response_rows(response, "insert lead")
        return lead

    def get(self, lead_id: UUID) -> Optional[Lead]:
        response = (
            self._client.table(_LEADS_TABLE)
            .select("*")
            .eq("lead_id", str(lead_id))
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "fetch lead")
        if not rows:
            return None
        return _row_to_lead(rows[0])

    def list_for_owner(self, identity: Identity, status: Optional[LeadStatus] = None) -> List[Lead]:
        scope = lead_scope_for(identity)
        if scope.nothing:
            return []

        query = self._client.table(_LEADS_TABLE).select("*")
        if scope.patient_id is not None:
            query = query.eq("patient_id", scope.patient_id)
        elif scope.assigned_consultant_id is not None:
            query = query.eq("assigned_consultant_id", scope.assigned_consultant_id)
        if status is not None:
            query = query.eq("status", status.value)

        rows = response_rows(query.order("created_at_utc").execute(), "list leads")
        # Re-check locally so that a mis-built query can never widen the scope.
        return scope.filter(_row_to_lead(row) for row in rows)

    def save(self, lead: Lead, expected_version: int) -> Lead:
        stored = replace(lead, version=expected_version + 1)
        payload = _lead_to_row(stored)
        del payload["lead_id"]
        del payload["created_at_utc"]

        response = (
            self._client.table(_LEADS_TABLE)
            .update(payload)
            .eq("lead_id", str(lead.lead_id))
            .eq("version", expected_version)
            .execute()
        )
        rows = response_rows(response, "update lead")
        if rows:
            return stored

        current = self.get(lead.lead_id)
        if current is None:
            raise NotFoundError(f"Lead {lead.lead_id} not found")
        raise ConcurrentUpdateError(
            f"Lead {lead.lead_id} was modified concurrently "
            f"(expected version {expected_version}, found {current.version})"
        )

    def delete(self, lead_id: UUID) -> bool:
        response = (
            self._client.table(_LEADS_TABLE)
            .delete()
            .eq("lead_id", str(lead_id))
            .execute()
        )
        return bool(response_rows(response, "delete lead"))


__all__ = [
    "InMemoryLeadRepository",
    "LeadRepository",
    "SupabaseLeadRepository",
]
