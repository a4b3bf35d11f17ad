"""
Auth API Endpoints.

Who the caller is, and whether they satisfy a given access requirement.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_core, get_identity
from api.models import AccessDecisionResponse, IdentityResponse, RequirementRequest
from domain.access_policy import Requirement, authorize
from domain.identity import Identity, Role
from services.container import CoreServices

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/auth/me",
    response_model=IdentityResponse,
    summary="Current Identity",
    description="The resolved identity for this request. Logged-out callers get role 'anonymous'."
)
def current_identity(
    actor: Identity = Depends(get_identity),
    core: CoreServices = Depends(get_core),
):
    try:
        return IdentityResponse.from_domain(actor, can_purchase=core.leads.can_purchase(actor))
    except Exception:
        logger.exception("Identity lookup failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to resolve identity"
        )


@router.post(
    "/auth/check",
    response_model=AccessDecisionResponse,
    summary="Check Access",
    description="Evaluate an access requirement for the caller. Used by the frontend to gate screens."
)
def check_access(
    request: RequirementRequest,
    actor: Identity = Depends(get_identity),
):
    """
    **Example request:**
    ```json
    {"roles": ["consultant", "admin"], "allow_external_vendor": true}
    ```

    **Response:**
    ```json
    {"allowed": false, "reason": "Access restricted to: admin, consultant, external vendors"}
    ```
    """
    try:
        try:
            roles = [Role.parse(role) for role in request.roles]
        except ValueError:
            raise HTTPException(
                status_code=422,
                detail=f"Invalid role in {request.roles}"
            )

        requirement = Requirement.any_of(*roles, allow_external_vendor=request.allow_external_vendor)
        return AccessDecisionResponse.from_domain(authorize(actor, requirement))

    except HTTPException:
        raise
    except Exception:
        logger.exception("Access check failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to check access"
        )
