"""
Leads API Endpoints.

Endpoints for opening, reading, listing, editing and deleting patient leads,
plus consultant assignment and stage history.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from api.dependencies import get_core, get_identity
from api.errors import raise_for_failure, unwrap
from api.models import (
    AssignConsultantRequest,
    LeadCreateRequest,
    LeadDeletedResponse,
    LeadListResponse,
    LeadResponse,
    LeadUpdateRequest,
    StageChangeResponse,
)
from domain.identity import Identity, Role
from domain.lead import LeadStatus
from services.container import CoreServices

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/leads",
    response_model=LeadResponse,
    status_code=201,
    summary="Open Lead",
    description="Open a new lead at stage 'novo'. Patients may only open leads for themselves."
)
def create_lead(
    request: LeadCreateRequest,
    response: Response,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    """
    Open a lead for a patient.

    Consultants and vendors who open a lead become its assigned owner. A
    patient who already has a lead gets it back with status 200.

    **Example request:**
    ```json
    {"patient_id": "patient-1", "source": "referral", "priority": "high"}
    ```
    """
    try:
        patient_id = request.patient_id
        if patient_id is None and actor.role is Role.PATIENT:
            patient_id = actor.user_id

        result = core.leads.create_lead(
            actor,
            patient_id,
            request.source,
            client_id=request.client_id,
            priority=request.priority,
        )
        lead = unwrap(result, actor)
        if not result.changed:
            response.status_code = 200
        return LeadResponse.from_domain(lead)

    except HTTPException:
        raise
    except Exception:
        logger.exception("Lead creation failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to create lead"
        )


@router.get(
    "/leads",
    response_model=LeadListResponse,
    summary="List Leads",
    description="Leads visible to the caller: all for admins and doctors, assigned ones for consultants and vendors, own ones for patients."
)
def list_leads(
    status: Optional[str] = Query(None, description="Filter by stage (e.g. 'aguardando_receita')"),
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        status_filter = None
        if status:
            try:
                status_filter = LeadStatus(status)
            except ValueError:
                raise HTTPException(
                    status_code=422,
                    detail=f"Invalid status. Got '{status}'"
                )

        leads = core.leads.list_leads_for_owner(actor, status=status_filter)
        return LeadListResponse(
            items=[LeadResponse.from_domain(lead) for lead in leads],
            total_count=len(leads),
        )

    except HTTPException:
        raise
    except Exception:
        logger.exception("Lead listing failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to list leads"
        )


@router.get(
    "/leads/{lead_id}",
    response_model=LeadResponse,
    summary="Get Lead",
)
def get_lead(
    lead_id: UUID,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        return LeadResponse.from_domain(unwrap(core.leads.get_lead(actor, lead_id), actor))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Lead lookup failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to fetch lead"
        )


@router.patch(
    "/leads/{lead_id}",
    response_model=LeadResponse,
    summary="Update Lead Fields",
    description="Patch CRM fields. Status and patient_id cannot be changed here."
)
def update_lead(
    lead_id: UUID,
    request: LeadUpdateRequest,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    """
    Update CRM enrichment fields on a lead.

    Only the fields present in the body are applied. Sending `status` is
    rejected with 422; stages move through `/leads/{lead_id}/advance` and the
    approval endpoints.
    """
    try:
        patch = request.model_dump(exclude_unset=True)
        result = core.leads.update_lead_fields(actor, lead_id, patch)
        return LeadResponse.from_domain(unwrap(result, actor))

    except HTTPException:
        raise
    except Exception:
        logger.exception("Lead update failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to update lead"
        )


@router.delete(
    "/leads/{lead_id}",
    response_model=LeadDeletedResponse,
    summary="Delete Lead",
    description="Delete a lead and its stage history. Reserved to consultants (own leads) and administrators."
)
def delete_lead(
    lead_id: UUID,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        deleted = unwrap(core.leads.delete_lead(actor, lead_id), actor)
        return LeadDeletedResponse(lead_id=deleted.lead_id)

    except HTTPException:
        raise
    except Exception:
        logger.exception("Lead deletion failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to delete lead"
        )


@router.patch(
    "/leads/{lead_id}/assign",
    response_model=LeadResponse,
    summary="Assign Consultant",
    description="Assign the owning staff member. Reassignment is reserved to administrators."
)
def assign_consultant(
    lead_id: UUID,
    request: AssignConsultantRequest,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        result = core.leads.assign_consultant(actor, lead_id, request.consultant_id)
        return LeadResponse.from_domain(unwrap(result, actor))

    except HTTPException:
        raise
    except Exception:
        logger.exception("Consultant assignment failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to assign consultant"
        )


@router.get(
    "/leads/{lead_id}/history",
    response_model=list[StageChangeResponse],
    summary="Stage History",
    description="Every stage change recorded for the lead, oldest first."
)
def get_lead_history(
    lead_id: UUID,
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        result = core.leads.get_lead_history(actor, lead_id)
        if not result.success:
            raise_for_failure(result.failure, actor)
        return [StageChangeResponse.from_domain(change) for change in result.changes]

    except HTTPException:
        raise
    except Exception:
        logger.exception("Stage history lookup failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to fetch stage history"
        )
