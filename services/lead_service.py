"""
Lead service.

The callable surface for lead records: create, read, scoped listing, CRM field
updates, consultant assignment, deletion and stage history. Expected business
outcomes come back as LeadResult / HistoryResult values; only storage faults
raise.

All writes to an existing lead go through LeadMutator, which:
- holds the per-lead lock for the whole read-modify-write;
- re-checks the actor's scope against the freshly read lead;
- writes with the version it read (optimistic check in the repository);
- records a StageChange whenever status moved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional
from uuid import UUID

from domain.access_policy import (
    AUTHENTICATED,
    LEAD_ASSIGNMENT,
    LEAD_EDITING,
    authorize,
    can_access_lead,
)
from domain.errors import AccessDeniedError, CoreError, Failure, FailureKind
from domain.identity import ASSIGNABLE_ROLES, Identity, Role
from domain.lead import Lead, LeadPriority, LeadStatus, apply_patch
from domain.stage_history import StageChange
from domain.time import utc_now
from repositories.lead_repository import LeadRepository
from repositories.stage_history_repository import StageHistoryRepository
from repositories.user_repository import UserRepository
from services.locks import KeyedLocks

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
LeadChange = Callable[[Lead, datetime], Lead]


@dataclass(frozen=True, slots=True)
class LeadResult:
    """
    Outcome of a lead operation.

    success: True if the operation was applied (or was already in effect)
    lead: the lead after the operation (None on failure)
    failure: the typed failure (None on success)
    changed: True if a write was committed
    """

    success: bool
    lead: Optional[Lead] = None
    failure: Optional[Failure] = None
    changed: bool = False

    @staticmethod
    def ok(lead: Lead, changed: bool = False) -> "LeadResult":
        return LeadResult(success=True, lead=lead, changed=changed)

    @staticmethod
    def failed(failure: Failure) -> "LeadResult":
        return LeadResult(success=False, failure=failure)


@dataclass(frozen=True, slots=True)
class HistoryResult:
    success: bool
    changes: List[StageChange] = field(default_factory=list)
    failure: Optional[Failure] = None


class LeadMutator:
    """Serialized read-modify-write of a single lead."""

    def __init__(
        self,
        leads: LeadRepository,
        history: StageHistoryRepository,
        locks: Optional[KeyedLocks] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._leads = leads
        self._history = history
        self._locks = locks or KeyedLocks()
        self._clock = clock

    @property
    def locks(self) -> KeyedLocks:
        return self._locks

    def mutate(
        self,
        actor: Identity,
        lead_id: UUID,
        change: LeadChange,
        *,
        notes: Optional[str] = None,
        scoped: bool = True,
    ) -> LeadResult:
        with self._locks.hold(str(lead_id)):
            lead = self._leads.get(lead_id)
            if lead is None:
                return LeadResult.failed(Failure.not_found(f"Lead {lead_id} not found"))
            if scoped and not can_access_lead(actor, lead):
                return LeadResult.failed(Failure.forbidden("Lead is outside your scope"))

            now = self._clock()
            try:
                updated = change(lead, now)
            except CoreError as exc:
                return LeadResult.failed(exc.failure)

            if updated == lead:
                return LeadResult.ok(lead, changed=False)

            try:
                saved = self._leads.save(updated, expected_version=lead.version)
            except CoreError as exc:
                if exc.kind is FailureKind.CONFLICT:
                    logger.warning(
                        "Concurrent update rejected",
                        extra={"lead_id": str(lead_id), "expected_version": lead.version},
                    )
                return LeadResult.failed(exc.failure)

            if saved.status is not lead.status:
                self._history.append(
                    StageChange.record(
                        lead_id=lead_id,
                        previous_status=lead.status,
                        new_status=saved.status,
                        by_user_id=actor.user_id or "",
                        now=now,
                        notes=notes,
                    )
                )
                logger.info(
                    f"Lead {lead_id} moved {lead.status.value} -> {saved.status.value}",
                    extra={
                        "lead_id": str(lead_id),
                        "previous_status": lead.status.value,
                        "new_status": saved.status.value,
                        "by_user_id": actor.user_id,
                    },
                )
            return LeadResult.ok(saved, changed=True)

    def remove(self, actor: Identity, lead_id: UUID) -> LeadResult:
        """Delete a lead and its stage history under the per-lead lock."""

        with self._locks.hold(str(lead_id)):
            lead = self._leads.get(lead_id)
            if lead is None:
                return LeadResult.failed(Failure.not_found(f"Lead {lead_id} not found"))
            if not can_access_lead(actor, lead):
                return LeadResult.failed(Failure.forbidden("Lead is outside your scope"))

            removed_changes = self._history.delete_for_lead(lead_id)
            if not self._leads.delete(lead_id):
                return LeadResult.failed(Failure.not_found(f"Lead {lead_id} not found"))

            logger.info(
                f"Lead {lead_id} deleted",
                extra={
                    "lead_id": str(lead_id),
                    "by_user_id": actor.user_id,
                    "stage_changes_removed": removed_changes,
                },
            )
            return LeadResult.ok(lead, changed=True)


def _denied(actor: Identity, decision_reason: Optional[str], action: str) -> LeadResult:
    logger.info(
        f"Access denied for {action}",
        extra={"user_id": actor.user_id, "role": actor.role.value, "action": action},
    )
    return LeadResult.failed(Failure.forbidden(decision_reason or "Access denied"))


class LeadService:
    def __init__(
        self,
        leads: LeadRepository,
        users: UserRepository,
        history: StageHistoryRepository,
        mutator: Optional[LeadMutator] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._leads = leads
        self._users = users
        self._history = history
        self._clock = clock
        self._mutator = mutator or LeadMutator(leads, history, clock=clock)

    def create_lead(
        self,
        actor: Identity,
        patient_id: Optional[str],
        source: str = "site",
        *,
        client_id: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> LeadResult:
        """
        Open a lead at `novo` for `patient_id`.

        Patients may only open a lead for themselves, and a patient who already
        has one gets it back unchanged. Consultants and vendors who open a lead
        become its assigned owner.
        """

        decision = authorize(actor, AUTHENTICATED)
        if not decision:
            return _denied(actor, decision.reason, "create_lead")
        if not patient_id or not str(patient_id).strip():
            return LeadResult.failed(
                Failure(FailureKind.VALIDATION_ERROR, "patient_id is required", "patient_id")
            )

        if actor.role is not Role.PATIENT:
            return self._open_lead(actor, str(patient_id).strip(), source, client_id, priority)

        if patient_id != actor.user_id:
            return _denied(actor, "Patients can only open leads for themselves", "create_lead")
        with self._mutator.locks.hold(f"patient:{actor.user_id}"):
            existing = self._leads.list_for_owner(actor)
            if existing:
                return LeadResult.ok(existing[0], changed=False)
            return self._open_lead(actor, actor.user_id, source, client_id, priority)

    def _open_lead(
        self,
        actor: Identity,
        patient_id: str,
        source: str,
        client_id: Optional[str],
        priority: Optional[str],
    ) -> LeadResult:
        now = self._clock()
        try:
            lead = Lead.new(
                patient_id=patient_id,
                client_id=client_id or actor.user_id,
                source=source or "site",
                now=now,
                priority=LeadPriority(priority) if priority else LeadPriority.MEDIUM,
                consultant_id=actor.user_id if actor.role in ASSIGNABLE_ROLES else None,
            )
        except CoreError as exc:
            return LeadResult.failed(exc.failure)
        except ValueError:
            return LeadResult.failed(
                Failure(FailureKind.VALIDATION_ERROR, f"Unknown priority '{priority}'", "priority")
            )

        if actor.role in (Role.CONSULTANT, Role.VENDOR):
            lead = lead.assigned_to(actor.user_id, now)

        self._leads.insert(lead)
        self._history.append(
            StageChange.record(
                lead_id=lead.lead_id,
                previous_status=None,
                new_status=LeadStatus.NOVO,
                by_user_id=actor.user_id,
                now=now,
                notes="Lead created",
            )
        )
        logger.info(
            f"Lead {lead.lead_id} created",
            extra={"lead_id": str(lead.lead_id), "patient_id": lead.patient_id, "source": lead.source},
        )
        return LeadResult.ok(lead, changed=True)

    def get_lead(self, actor: Identity, lead_id: UUID) -> LeadResult:
        decision = authorize(actor, AUTHENTICATED)
        if not decision:
            return _denied(actor, decision.reason, "get_lead")
        lead = self._leads.get(lead_id)
        if lead is None:
            return LeadResult.failed(Failure.not_found(f"Lead {lead_id} not found"))
        if not can_access_lead(actor, lead):
            return _denied(actor, "Lead is outside your scope", "get_lead")
        return LeadResult.ok(lead)

    def list_leads_for_owner(self, actor: Identity, status: Optional[LeadStatus] = None) -> List[Lead]:
        """Leads visible to `actor`; anonymous callers get an empty list."""

        return self._leads.list_for_owner(actor, status=status)

    def update_lead_fields(self, actor: Identity, lead_id: UUID, patch: Mapping[str, Any]) -> LeadResult:
        """Apply a CRM field patch. Status and patient_id cannot be patched."""

        decision = authorize(actor, LEAD_EDITING)
        if not decision:
            return _denied(actor, decision.reason, "update_lead_fields")
        return self._mutator.mutate(actor, lead_id, lambda lead, now: apply_patch(lead, patch, now))

    def assign_consultant(self, actor: Identity, lead_id: UUID, consultant_id: str) -> LeadResult:
        """
        Assign the owning staff member.

        A lead is assigned once; after that only an admin may reassign it.
        """

        decision = authorize(actor, LEAD_ASSIGNMENT)
        if not decision:
            return _denied(actor, decision.reason, "assign_consultant")

        target = self._users.get_identity(consultant_id) if consultant_id else None
        if target is None or target.role not in ASSIGNABLE_ROLES:
            return LeadResult.failed(
                Failure(
                    FailureKind.VALIDATION_ERROR,
                    "consultant_id must reference an existing staff member",
                    "consultant_id",
                )
            )

        def assign(lead: Lead, now: datetime) -> Lead:
            if lead.assigned_consultant_id and actor.role is not Role.ADMIN:
                raise AccessDeniedError("Lead is already assigned; only administrators can reassign it")
            if lead.assigned_consultant_id == target.user_id:
                return lead
            return lead.assigned_to(target.user_id, now)

        return self._mutator.mutate(actor, lead_id, assign, scoped=False)

    def delete_lead(self, actor: Identity, lead_id: UUID) -> LeadResult:
        """Delete a lead together with its stage history. Returns the removed lead."""

        decision = authorize(actor, LEAD_ASSIGNMENT)
        if not decision:
            return _denied(actor, decision.reason, "delete_lead")
        return self._mutator.remove(actor, lead_id)

    def get_lead_history(self, actor: Identity, lead_id: UUID) -> HistoryResult:
        found = self.get_lead(actor, lead_id)
        if not found.success:
            return HistoryResult(success=False, failure=found.failure)
        return HistoryResult(success=True, changes=self._history.list_for_lead(lead_id))

    def can_purchase(self, actor: Identity) -> bool:
        """True if the patient has a lead with both document tracks approved."""

        if actor.role is not Role.PATIENT:
            return False
        return any(lead.can_purchase for lead in self._leads.list_for_owner(actor))


__all__ = ["HistoryResult", "LeadMutator", "LeadResult", "LeadService"]
