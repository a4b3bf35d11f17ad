"""
Domain: Lead aggregate.

A Lead tracks one patient's journey from first contact to product release.

Invariants enforced here:
- Every Lead has exactly one non-empty patient_id, fixed at creation.
- created_at is set once; updated_at moves on every mutation.
- status is one of the ordered LeadStatus values. It is never written through a
  field patch; only the stage machine (domain/stage_machine.py) changes it.
- The two approval tracks are independent booleans, each with the last
  rejection reason. They are not folded into status.

Entities are frozen: every mutation returns a new instance, and `version` is
bumped by the repository on each committed write.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional, Tuple
from uuid import UUID, uuid4

from .errors import InvalidInputError
from .time import require_utc_timestamp


class LeadStatus(str, Enum):
    NOVO = "novo"
    CONTATO_INICIAL = "contato_inicial"
    AGUARDANDO_RECEITA = "aguardando_receita"
    RECEITA_RECEBIDA = "receita_recebida"
    RECEITA_VALIDADA = "receita_validada"
    PRODUTOS_LIBERADOS = "produtos_liberados"
    FINALIZADO = "finalizado"

    @property
    def rank(self) -> int:
        return LEAD_STATUS_ORDER.index(self)

    def next(self) -> Optional["LeadStatus"]:
        """The following stage, or None at the end of the lifecycle."""

        idx = self.rank + 1
        if idx >= len(LEAD_STATUS_ORDER):
            return None
        return LEAD_STATUS_ORDER[idx]


LEAD_STATUS_ORDER: Tuple[LeadStatus, ...] = (
    LeadStatus.NOVO,
    LeadStatus.CONTATO_INICIAL,
    LeadStatus.AGUARDANDO_RECEITA,
    LeadStatus.RECEITA_RECEBIDA,
    LeadStatus.RECEITA_VALIDADA,
    LeadStatus.PRODUTOS_LIBERADOS,
    LeadStatus.FINALIZADO,
)


class LeadPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ApprovalTrack(str, Enum):
    PRESCRIPTION = "prescription"
    AUTHORIZATION = "authorization"


# CRM enrichment fields. Owning staff may change these freely; none of them
# affects the stage machine.
EDITABLE_FIELDS = frozenset({
    "priority",
    "source",
    "notes",
    "tags",
    "lead_score",
    "budget",
    "next_follow_up",
    "products_interest",
    "referral_source",
    "lost_reason",
    "city",
    "state",
})


@dataclass(frozen=True, slots=True)
class Lead:
    lead_id: UUID
    patient_id: str
    client_id: str
    source: str
    status: LeadStatus
    priority: LeadPriority
    created_at: datetime
    updated_at: datetime

    # Ownership
    consultant_id: Optional[str] = None
    assigned_consultant_id: Optional[str] = None
    assigned_at: Optional[datetime] = None

    # Approval tracks
    prescription_approved: bool = False
    anvisa_approved: bool = False
    prescription_rejection_reason: Optional[str] = None
    anvisa_rejection_reason: Optional[str] = None

    # CRM enrichment
    notes: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)
    lead_score: int = 0
    budget: Optional[Decimal] = None
    next_follow_up: Optional[datetime] = None
    products_interest: Tuple[str, ...] = field(default_factory=tuple)
    referral_source: Optional[str] = None
    lost_reason: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    version: int = 1

    def __post_init__(self) -> None:
        if not self.patient_id or not str(self.patient_id).strip():
            raise InvalidInputError("patient_id is required", field="patient_id")
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.assigned_at is not None:
            require_utc_timestamp("assigned_at", self.assigned_at)
        if self.next_follow_up is not None:
            require_utc_timestamp("next_follow_up", self.next_follow_up)
        if not 0 <= self.lead_score <= 100:
            raise InvalidInputError("lead_score must be between 0 and 100", field="lead_score")

    @staticmethod
    def new(
        *,
        patient_id: str,
        client_id: str,
        source: str,
        now: datetime,
        priority: LeadPriority = LeadPriority.MEDIUM,
        consultant_id: Optional[str] = None,
    ) -> "Lead":
        """Start a lead at `novo` with both approval tracks open."""

        return Lead(
            lead_id=uuid4(),
            patient_id=patient_id,
            client_id=client_id or patient_id,
            source=source,
            status=LeadStatus.NOVO,
            priority=priority,
            created_at=now,
            updated_at=now,
            consultant_id=consultant_id,
        )

    @property
    def can_purchase(self) -> bool:
        """Product purchase unlocks only while both tracks are approved."""

        return self.prescription_approved and self.anvisa_approved

    def is_approved(self, track: ApprovalTrack) -> bool:
        if track is ApprovalTrack.PRESCRIPTION:
            return self.prescription_approved
        return self.anvisa_approved

    def rejection_reason(self, track: ApprovalTrack) -> Optional[str]:
        if track is ApprovalTrack.PRESCRIPTION:
            return self.prescription_rejection_reason
        return self.anvisa_rejection_reason

    def with_track(
        self,
        track: ApprovalTrack,
        *,
        approved: bool,
        reason: Optional[str],
        now: datetime,
    ) -> "Lead":
        if track is ApprovalTrack.PRESCRIPTION:
            return replace(
                self,
                prescription_approved=approved,
                prescription_rejection_reason=reason,
                updated_at=now,
            )
        return replace(
            self,
            anvisa_approved=approved,
            anvisa_rejection_reason=reason,
            updated_at=now,
        )

    def assigned_to(self, consultant_id: str, now: datetime) -> "Lead":
        return replace(
            self,
            assigned_consultant_id=consultant_id,
            assigned_at=now,
            updated_at=now,
        )


def _coerce_patch_value(name: str, value: Any) -> Any:
    """Normalize a single patched value to the type stored on the entity."""

    if name == "priority":
        try:
            return LeadPriority(value)
        except ValueError:
            raise InvalidInputError(f"Unknown priority '{value}'", field=name) from None
    if name in ("tags", "products_interest"):
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            raise InvalidInputError(f"{name} must be a list of strings", field=name)
        return tuple(value)
    if name == "lead_score":
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidInputError("lead_score must be an integer", field=name)
        return value
    if name == "budget" and value is not None:
        try:
            budget = Decimal(str(value))
        except InvalidOperation:
            raise InvalidInputError("budget must be a decimal amount", field=name) from None
        if not budget.is_finite():
            raise InvalidInputError("budget must be a finite amount", field=name)
        return budget
    if name == "next_follow_up" and value is not None:
        if not isinstance(value, datetime):
            raise InvalidInputError("next_follow_up must be a datetime", field=name)
        if value.tzinfo is None or value.utcoffset() is None:
            raise InvalidInputError("next_follow_up must be timezone-aware", field=name)
        return value.astimezone(timezone.utc)
    if name == "source" and not value:
        raise InvalidInputError("source cannot be empty", field=name)
    return value


def apply_patch(lead: Lead, patch: Mapping[str, Any], now: datetime) -> Lead:
    """
    Apply a CRM field patch and return the updated lead.

    Rejects:
    - any attempt to set status (status moves only through the stage machine);
    - a change of patient_id (immutable once set);
    - any other field outside EDITABLE_FIELDS.
    """

    if "status" in patch:
        raise InvalidInputError(
            "status cannot be patched; use a stage transition instead", field="status"
        )
    if "patient_id" in patch and patch["patient_id"] != lead.patient_id:
        raise InvalidInputError("patient_id cannot be changed once set", field="patient_id")

    changes: dict[str, Any] = {}
    for name, value in patch.items():
        if name == "patient_id":
            continue
        if name not in EDITABLE_FIELDS:
            raise InvalidInputError(f"Field '{name}' cannot be updated", field=name)
        changes[name] = _coerce_patch_value(name, value)

    if not changes:
        return lead
    return replace(lead, updated_at=now, **changes)


__all__ = [
    "ApprovalTrack",
    "EDITABLE_FIELDS",
    "LEAD_STATUS_ORDER",
    "Lead",
    "LeadPriority",
    "LeadStatus",
    "apply_patch",
]
