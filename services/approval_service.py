"""
Document approval workflow.

Drives the stage machine on behalf of an acting identity:
- advance_stage: one linear step, for consultants, doctors and admins who can
  see the lead;
- approve/reject on two independent tracks (medical prescription, ANVISA
  authorization), for doctors and admins.

Every operation checks access first, then runs as a single serialized write
through LeadMutator. The unlock to `produtos_liberados` is computed inside that
same write, so no reader can observe both tracks approved while status lags
behind.

Notifications go out only after the write is committed, and their failure is
logged and ignored. An idempotent approval (the track was already approved)
commits nothing and sends nothing.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from domain import stage_machine
from domain.access_policy import DOCUMENT_REVIEW, STAGE_ADVANCE, Requirement, authorize
from domain.errors import Failure
from domain.identity import Identity
from domain.lead import ApprovalTrack, LeadStatus
from domain.notification import NotificationEvent, TemplateKind
from services.lead_service import LeadMutator, LeadResult
from services.notification_service import NotificationDispatcher, dispatch_safely

logger = logging.getLogger(__name__)

_TRACK_LABELS = {
    ApprovalTrack.PRESCRIPTION: "prescription",
    ApprovalTrack.AUTHORIZATION: "ANVISA authorization",
}


class ApprovalWorkflow:
    def __init__(self, mutator: LeadMutator, dispatcher: NotificationDispatcher) -> None:
        self._mutator = mutator
        self._dispatcher = dispatcher

    def _check(self, actor: Identity, requirement: Requirement, action: str) -> Optional[LeadResult]:
        decision = authorize(actor, requirement)
        if decision:
            return None
        logger.info(
            f"Access denied for {action}",
            extra={"user_id": actor.user_id, "role": actor.role.value, "action": action},
        )
        return LeadResult.failed(Failure.forbidden(decision.reason or "Access denied"))

    # ------------------------------------------------------------------
    # Linear track
    # ------------------------------------------------------------------

    def advance_stage(
        self,
        actor: Identity,
        lead_id: UUID,
        target: Optional[LeadStatus] = None,
        notes: Optional[str] = None,
    ) -> LeadResult:
        """
        Move the lead one stage forward.

        `target`, when given, must name the immediate next stage. `notes` are
        recorded on the stage change.
        """

        denied = self._check(actor, STAGE_ADVANCE, "advance_stage")
        if denied:
            return denied
        return self._mutator.mutate(
            actor,
            lead_id,
            lambda lead, now: stage_machine.advance(lead, now, target),
            notes=notes or "Stage advanced",
        )

    # ------------------------------------------------------------------
    # Document tracks
    # ------------------------------------------------------------------

    def approve_prescription(self, actor: Identity, lead_id: UUID) -> LeadResult:
        return self._approve(actor, lead_id, ApprovalTrack.PRESCRIPTION)

    def reject_prescription(self, actor: Identity, lead_id: UUID, reason: str) -> LeadResult:
        return self._reject(actor, lead_id, ApprovalTrack.PRESCRIPTION, reason)

    def approve_authorization(self, actor: Identity, lead_id: UUID) -> LeadResult:
        return self._approve(actor, lead_id, ApprovalTrack.AUTHORIZATION)

    def reject_authorization(self, actor: Identity, lead_id: UUID, reason: str) -> LeadResult:
        return self._reject(actor, lead_id, ApprovalTrack.AUTHORIZATION, reason)

    def _approve(self, actor: Identity, lead_id: UUID, track: ApprovalTrack) -> LeadResult:
        denied = self._check(actor, DOCUMENT_REVIEW, f"approve_{track.value}")
        if denied:
            return denied

        result = self._mutator.mutate(
            actor,
            lead_id,
            lambda lead, now: stage_machine.approve(lead, track, now),
            notes=f"Products released after {_TRACK_LABELS[track]} approval",
        )
        if result.success and result.changed:
            logger.info(
                f"{_TRACK_LABELS[track].capitalize()} approved for lead {lead_id}",
                extra={
                    "lead_id": str(lead_id),
                    "track": track.value,
                    "can_purchase": result.lead.can_purchase,
                },
            )
            self._notify(NotificationEvent(
                subject_id=result.lead.patient_id,
                template_kind=TemplateKind.APPROVED,
                track_kind=track,
                lead_id=lead_id,
            ))
        return result

    def _reject(self, actor: Identity, lead_id: UUID, track: ApprovalTrack, reason: str) -> LeadResult:
        denied = self._check(actor, DOCUMENT_REVIEW, f"reject_{track.value}")
        if denied:
            return denied

        result = self._mutator.mutate(
            actor,
            lead_id,
            lambda lead, now: stage_machine.reject(lead, track, reason, now),
        )
        if result.success:
            logger.info(
                f"{_TRACK_LABELS[track].capitalize()} rejected for lead {lead_id}",
                extra={"lead_id": str(lead_id), "track": track.value},
            )
            self._notify(NotificationEvent(
                subject_id=result.lead.patient_id,
                template_kind=TemplateKind.REJECTED,
                track_kind=track,
                lead_id=lead_id,
                reason=result.lead.rejection_reason(track),
            ))
        return result

    def _notify(self, event: NotificationEvent) -> None:
        dispatch_safely(self._dispatcher, event)


__all__ = ["ApprovalWorkflow"]
