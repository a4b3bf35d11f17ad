"""
Domain: access policy evaluation.

`authorize` is pure and total: every (identity, requirement) pair maps to an
AccessDecision, and nothing here raises or performs I/O.

A Requirement combines an acceptable role set with an "external vendor" flag
check; when both are present the identity passes if either one passes. An
empty requirement admits any authenticated identity. The anonymous identity
never passes.

Lead scoping (`lead_scope_for`) lives here as well so that the repositories can
apply one rule at the store boundary:
- admin and doctor see every lead;
- consultant and vendor see leads assigned to them;
- patients see leads they are the subject of.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from .identity import Identity, Role
from .lead import Lead


@dataclass(frozen=True, slots=True)
class Requirement:
    roles: FrozenSet[Role] = frozenset()
    allow_external_vendor: bool = False

    @staticmethod
    def any_of(*roles: Role, allow_external_vendor: bool = False) -> "Requirement":
        return Requirement(roles=frozenset(roles), allow_external_vendor=allow_external_vendor)

    @property
    def is_empty(self) -> bool:
        return not self.roles and not self.allow_external_vendor

    def describe(self) -> str:
        parts = [role.value for role in sorted(self.roles, key=lambda r: r.value)]
        if self.allow_external_vendor:
            parts.append("external vendors")
        return ", ".join(parts) if parts else "authenticated users"


AUTHENTICATED = Requirement()
STAGE_ADVANCE = Requirement.any_of(Role.CONSULTANT, Role.DOCTOR, Role.ADMIN)
DOCUMENT_REVIEW = Requirement.any_of(Role.DOCTOR, Role.ADMIN)
LEAD_ASSIGNMENT = Requirement.any_of(Role.CONSULTANT, Role.ADMIN)
LEAD_EDITING = Requirement.any_of(Role.CONSULTANT, Role.VENDOR, Role.DOCTOR, Role.ADMIN)


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AccessDecision(allowed=True)


def authorize(identity: Optional[Identity], requirement: Optional[Requirement] = None) -> AccessDecision:
    """Evaluate `requirement` for `identity`. A missing identity counts as anonymous."""

    if identity is None or identity.is_anonymous:
        return AccessDecision(False, "Authentication required")

    if requirement is None or requirement.is_empty:
        return ALLOW

    if requirement.roles and identity.role in requirement.roles:
        return ALLOW

    # Identities built elsewhere may lack the flag entirely; absent means false.
    if requirement.allow_external_vendor and getattr(identity, "is_external_vendor", False) is True:
        return ALLOW

    return AccessDecision(False, f"Access restricted to: {requirement.describe()}")


@dataclass(frozen=True, slots=True)
class LeadScope:
    """
    Filter describing which leads an identity may see.

    Exactly one of the following holds:
    - everything is True (no filter);
    - patient_id is set;
    - assigned_consultant_id is set;
    - nothing is True (empty result).
    """

    everything: bool = False
    nothing: bool = False
    patient_id: Optional[str] = None
    assigned_consultant_id: Optional[str] = None

    def admits(self, lead: Lead) -> bool:
        if self.everything:
            return True
        if self.nothing:
            return False
        if self.patient_id is not None:
            return lead.patient_id == self.patient_id
        return lead.assigned_consultant_id == self.assigned_consultant_id

    def filter(self, leads: Iterable[Lead]) -> list[Lead]:
        return [lead for lead in leads if self.admits(lead)]


def lead_scope_for(identity: Optional[Identity]) -> LeadScope:
    if identity is None or identity.is_anonymous:
        return LeadScope(nothing=True)
    if identity.role in (Role.ADMIN, Role.DOCTOR):
        return LeadScope(everything=True)
    if identity.role in (Role.CONSULTANT, Role.VENDOR):
        return LeadScope(assigned_consultant_id=identity.user_id)
    if identity.role is Role.PATIENT:
        return LeadScope(patient_id=identity.user_id)
    return LeadScope(nothing=True)


def can_access_lead(identity: Optional[Identity], lead: Lead) -> bool:
    return lead_scope_for(identity).admits(lead)


__all__ = [
    "AUTHENTICATED",
    "AccessDecision",
    "DOCUMENT_REVIEW",
    "LEAD_ASSIGNMENT",
    "LEAD_EDITING",
    "LeadScope",
    "Requirement",
    "STAGE_ADVANCE",
    "authorize",
    "can_access_lead",
    "lead_scope_for",
]
