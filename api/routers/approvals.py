"""
Approvals API Endpoints.

Stage advancement and the two document review tracks (medical prescription
and ANVISA authorization).
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException

from api.dependencies import get_core, get_identity
from api.errors import unwrap
from api.models import AdvanceStageRequest, LeadResponse, RejectionRequest
from domain.identity import Identity
from domain.lead import LeadStatus
from services.container import CoreServices

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/leads/{lead_id}/advance",
    response_model=LeadResponse,
    summary="Advance Stage",
    description="Move the lead one stage forward. Stages cannot be skipped."
)
def advance_stage(
    lead_id: UUID,
    request: Optional[AdvanceStageRequest] = Body(None),
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    """
    Advance a lead to its next stage.

    An optional `target` guards against double submissions: when present it
    must name the immediate next stage, otherwise the request fails with 409.
    Optional `notes` are recorded on the stage change.
    """
    try:
        target = None
        notes = request.notes if request is not None else None
        if request is not None and request.target:
            try:
                target = LeadStatus(request.target)
            except ValueError:
                raise HTTPException(
                    status_code=422,
                    detail=f"Invalid target stage. Got '{request.target}'"
                )

        result = core.approvals.advance_stage(actor, lead_id, target, notes=notes)
        return LeadResponse.from_domain(unwrap(result, actor))

    except HTTPException:
        raise
    except Exception:
        logger.exception("Stage advance failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to advance stage"
        )


@router.post(
    "/leads/{lead_id}/prescription/approve",
    response_model=LeadResponse,
    summary="Approve Prescription",
)
def approve_prescription(
    lead_id: UUID,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        return LeadResponse.from_domain(unwrap(core.approvals.approve_prescription(actor, lead_id), actor))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Prescription approval failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to approve prescription"
        )


@router.post(
    "/leads/{lead_id}/prescription/reject",
    response_model=LeadResponse,
    summary="Reject Prescription",
    description="Reject the prescription with a reason shown to the patient."
)
def reject_prescription(
    lead_id: UUID,
    request: RejectionRequest,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        result = core.approvals.reject_prescription(actor, lead_id, request.reason)
        return LeadResponse.from_domain(unwrap(result, actor))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Prescription rejection failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to reject prescription"
        )


@router.post(
    "/leads/{lead_id}/authorization/approve",
    response_model=LeadResponse,
    summary="Approve ANVISA Authorization",
)
def approve_authorization(
    lead_id: UUID,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        return LeadResponse.from_domain(unwrap(core.approvals.approve_authorization(actor, lead_id), actor))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Authorization approval failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to approve authorization"
        )


@router.post(
    "/leads/{lead_id}/authorization/reject",
    response_model=LeadResponse,
    summary="Reject ANVISA Authorization",
    description="Reject the import authorization with a reason shown to the patient."
)
def reject_authorization(
    lead_id: UUID,
    request: RejectionRequest,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        result = core.approvals.reject_authorization(actor, lead_id, request.reason)
        return LeadResponse.from_domain(unwrap(result, actor))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Authorization rejection failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to reject authorization"
        )
