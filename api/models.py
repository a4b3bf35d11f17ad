"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from domain.access_policy import AccessDecision
from domain.cart import Cart
from domain.identity import Identity
from domain.lead import Lead
from domain.stage_history import StageChange


# ============================================================================
# Lead Models
# ============================================================================

class LeadCreateRequest(BaseModel):
    """Request to open a lead. Patients may omit patient_id (defaults to themselves)."""
    patient_id: Optional[str] = Field(None, description="Subject of the lead")
    source: str = Field("site", description="Acquisition channel, e.g. 'site', 'referral'")
    client_id: Optional[str] = Field(None, description="Account creating the lead (defaults to caller)")
    priority: Optional[str] = Field(None, description="low, medium, high or urgent")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "patient_id": "8d4c1f0e-4a55-4b8f-9e0a-1b2c3d4e5f60",
                "source": "site",
                "priority": "high"
            }
        }
    )


class LeadUpdateRequest(BaseModel):
    """
    CRM field patch. Only fields present in the body are applied.

    Unknown fields are passed through so the core can reject them by name
    (e.g. `status`, which only changes through stage transitions).
    """
    model_config = ConfigDict(extra="allow")

    priority: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    lead_score: Optional[int] = None
    budget: Optional[Decimal] = None
    next_follow_up: Optional[datetime] = None
    products_interest: Optional[List[str]] = None
    referral_source: Optional[str] = None
    lost_reason: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


class AssignConsultantRequest(BaseModel):
    consultant_id: str = Field(..., min_length=1, description="Staff member who will own the lead")


class AdvanceStageRequest(BaseModel):
    """Optional guard on the stage the caller expects to move into, plus notes for the history."""
    target: Optional[str] = None
    notes: Optional[str] = Field(None, description="Recorded on the stage change")


class RejectionRequest(BaseModel):
    reason: str = Field("", description="Why the document was rejected (required, shown to the patient)")

    model_config = ConfigDict(json_schema_extra={"example": {"reason": "Assinatura ilegível"}})


class LeadResponse(BaseModel):
    """Single lead in API responses."""
    lead_id: UUID
    patient_id: str
    client_id: str
    source: str
    status: str
    priority: str
    consultant_id: Optional[str] = None
    assigned_consultant_id: Optional[str] = None
    assigned_at: Optional[datetime] = None
    prescription_approved: bool
    anvisa_approved: bool
    prescription_rejection_reason: Optional[str] = None
    anvisa_rejection_reason: Optional[str] = None
    can_purchase: bool
    notes: Optional[str] = None
    tags: List[str]
    lead_score: int
    budget: Optional[Decimal] = None
    next_follow_up: Optional[datetime] = None
    products_interest: List[str]
    referral_source: Optional[str] = None
    lost_reason: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_domain(cls, lead: Lead) -> "LeadResponse":
        return cls(
            lead_id=lead.lead_id,
            patient_id=lead.patient_id,
            client_id=lead.client_id,
            source=lead.source,
            status=lead.status.value,
            priority=lead.priority.value,
            consultant_id=lead.consultant_id,
            assigned_consultant_id=lead.assigned_consultant_id,
            assigned_at=lead.assigned_at,
            prescription_approved=lead.prescription_approved,
            anvisa_approved=lead.anvisa_approved,
            prescription_rejection_reason=lead.prescription_rejection_reason,
            anvisa_rejection_reason=lead.anvisa_rejection_reason,
            can_purchase=lead.can_purchase,
            notes=lead.notes,
            tags=list(lead.tags),
            lead_score=lead.lead_score,
            budget=lead.budget,
            next_follow_up=lead.next_follow_up,
            products_interest=list(lead.products_interest),
            referral_source=lead.referral_source,
            lost_reason=lead.lost_reason,
            city=lead.city,
            state=lead.state,
            created_at=lead.created_at,
            updated_at=lead.updated_at,
            version=lead.version,
        )


class LeadListResponse(BaseModel):
    items: List[LeadResponse]
    total_count: int


class LeadDeletedResponse(BaseModel):
    lead_id: UUID
    message: str = "Lead deleted successfully"


class StageChangeResponse(BaseModel):
    previous_status: Optional[str] = None
    new_status: str
    by_user_id: str
    notes: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, change: StageChange) -> "StageChangeResponse":
        return cls(
            previous_status=change.previous_status.value if change.previous_status else None,
            new_status=change.new_status.value,
            by_user_id=change.by_user_id,
            notes=change.notes,
            created_at=change.created_at,
        )


# ============================================================================
# Cart Models
# ============================================================================

class CartItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    unit_price: Decimal = Field(..., ge=0, description="Unit price at the moment of adding")


class CartQuantityRequest(BaseModel):
    quantity: int = Field(..., description="New quantity; 0 removes the item")


class CartLineResponse(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class CartResponse(BaseModel):
    items: List[CartLineResponse]
    total: Decimal
    item_count: int

    @classmethod
    def from_domain(cls, cart: Cart) -> "CartResponse":
        return cls(
            items=[
                CartLineResponse(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal,
                )
                for line in cart.lines.values()
            ],
            total=cart.total,
            item_count=cart.item_count,
        )


# ============================================================================
# Identity / Access Models
# ============================================================================

class IdentityResponse(BaseModel):
    user_id: Optional[str] = None
    role: str
    is_external_vendor: bool
    affiliate_code: Optional[str] = None
    can_purchase: bool = False

    @classmethod
    def from_domain(cls, identity: Identity, can_purchase: bool = False) -> "IdentityResponse":
        return cls(
            user_id=identity.user_id,
            role=identity.role.value,
            is_external_vendor=identity.is_external_vendor,
            affiliate_code=identity.affiliate_code,
            can_purchase=can_purchase,
        )


class RequirementRequest(BaseModel):
    """Access requirement: any of `roles`, or external vendor when allowed."""
    roles: List[str] = Field(default_factory=list)
    allow_external_vendor: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"roles": ["consultant", "admin"], "allow_external_vendor": True}
        }
    )


class AccessDecisionResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def from_domain(cls, decision: AccessDecision) -> "AccessDecisionResponse":
        return cls(allowed=decision.allowed, reason=decision.reason)
