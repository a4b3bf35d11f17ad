"""
Domain: stage transition engine.

Pure functions over the Lead aggregate. Nothing here reads storage, checks the
acting identity, or emits notifications; callers do that around these calls.

Rules:
- Linear advance moves exactly one step along LEAD_STATUS_ORDER and fails at
  `finalizado`.
- Approving a track sets its boolean and clears its rejection reason. When the
  other track is already approved, status is raised to `produtos_liberados` in
  the same returned entity, unless it is already there or beyond. The unlock
  condition is a plain conjunction, so approval order does not matter.
- Rejecting a track needs a non-empty reason, clears only that track's boolean
  and never moves status.
- Documents of a finalized lead are closed to review.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from .errors import InvalidInputError, InvalidTransitionError
from .lead import ApprovalTrack, Lead, LeadStatus


def advance(lead: Lead, now: datetime, target: Optional[LeadStatus] = None) -> Lead:
    """
    Move `lead` to the next stage.

    If `target` is given it must be the immediate next stage; anything else is a
    skip (or a step backward) and is rejected.
    """

    next_status = lead.status.next()
    if next_status is None:
        raise InvalidTransitionError("Lead is already finalized")
    if target is not None and target is not next_status:
        raise InvalidTransitionError(
            f"Cannot move from '{lead.status.value}' to '{target.value}'; "
            f"the next stage is '{next_status.value}'"
        )
    return replace(lead, status=next_status, updated_at=now)


def _require_open_for_review(lead: Lead) -> None:
    if lead.status is LeadStatus.FINALIZADO:
        raise InvalidTransitionError("Lead is already finalized; documents can no longer be reviewed")


def unlock_if_ready(lead: Lead) -> Lead:
    """Raise status to `produtos_liberados` when both tracks are approved."""

    if lead.can_purchase and lead.status.rank < LeadStatus.PRODUTOS_LIBERADOS.rank:
        return replace(lead, status=LeadStatus.PRODUTOS_LIBERADOS)
    return lead


def approve(lead: Lead, track: ApprovalTrack, now: datetime) -> Lead:
    """
    Approve one document track.

    Approving an already-approved track returns the lead unchanged.
    """

    _require_open_for_review(lead)
    if lead.is_approved(track):
        return unlock_if_ready(lead)
    updated = lead.with_track(track, approved=True, reason=None, now=now)
    return unlock_if_ready(updated)


def reject(lead: Lead, track: ApprovalTrack, reason: str, now: datetime) -> Lead:
    """Reject one document track, reopening it for resubmission."""

    text = (reason or "").strip()
    if not text:
        raise InvalidInputError("A rejection reason is required", field="reason")
    _require_open_for_review(lead)
    return lead.with_track(track, approved=False, reason=text, now=now)


__all__ = ["advance", "approve", "reject", "unlock_if_ready"]
