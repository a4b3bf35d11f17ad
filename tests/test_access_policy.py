"""
Tests for `domain/access_policy.py`.

Covers contract rules:
- The anonymous identity never passes, whatever the requirement.
- An empty requirement admits any authenticated identity.
- Role set and external vendor flag combine with OR.
- Lead scoping per role.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from types import SimpleNamespace

from domain.access_policy import (
    AUTHENTICATED,
    DOCUMENT_REVIEW,
    Requirement,
    authorize,
    can_access_lead,
    lead_scope_for,
)
from domain.identity import ANONYMOUS, Identity, Role
from domain.lead import Lead

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_anonymous_is_always_denied() -> None:
    for requirement in (None, AUTHENTICATED, DOCUMENT_REVIEW, Requirement(allow_external_vendor=True)):
        decision = authorize(ANONYMOUS, requirement)
        assert not decision
        assert decision.reason == "Authentication required"

    assert not authorize(None, AUTHENTICATED)


def test_empty_requirement_admits_any_authenticated_identity() -> None:
    for role in (Role.PATIENT, Role.VENDOR, Role.ADMIN):
        assert authorize(Identity(user_id="u", role=role), AUTHENTICATED)
        assert authorize(Identity(user_id="u", role=role))


def test_role_requirement() -> None:
    assert authorize(Identity(user_id="d", role=Role.DOCTOR), DOCUMENT_REVIEW)

    decision = authorize(Identity(user_id="c", role=Role.CONSULTANT), DOCUMENT_REVIEW)
    assert decision.allowed is False
    assert decision.reason == "Access restricted to: admin, doctor"


def test_external_vendor_flag_or_role() -> None:
    """Verify a requirement passes on either the role set or the vendor flag."""

    requirement = Requirement.any_of(Role.ADMIN, allow_external_vendor=True)

    assert authorize(Identity(user_id="a", role=Role.ADMIN), requirement)
    assert authorize(Identity(user_id="v", role=Role.PATIENT, is_external_vendor=True), requirement)
    assert not authorize(Identity(user_id="p", role=Role.PATIENT), requirement)


def test_vendor_flag_ignored_when_not_allowed() -> None:
    identity = Identity(user_id="v", role=Role.VENDOR, is_external_vendor=True)
    assert not authorize(identity, Requirement.any_of(Role.ADMIN))


def test_missing_vendor_flag_counts_as_false() -> None:
    identity = SimpleNamespace(user_id="x", role=Role.PATIENT, is_anonymous=False)
    assert not authorize(identity, Requirement(allow_external_vendor=True))


def test_vendor_only_requirement() -> None:
    requirement = Requirement(allow_external_vendor=True)

    assert authorize(Identity(user_id="v", role=Role.VENDOR, is_external_vendor=True), requirement)
    assert not authorize(Identity(user_id="a", role=Role.ADMIN), requirement)


def test_client_role_is_patient() -> None:
    assert Role.parse("client") is Role.PATIENT
    assert Role.parse(" Doctor ") is Role.DOCTOR


class TestLeadScope:
    def _lead(self, patient_id: str, assigned: str | None = None) -> Lead:
        lead = Lead.new(patient_id=patient_id, client_id=patient_id, source="site", now=NOW)
        return replace(lead, assigned_consultant_id=assigned)

    def test_admin_and_doctor_see_everything(self) -> None:
        lead = self._lead("p1")
        assert can_access_lead(Identity(user_id="a", role=Role.ADMIN), lead)
        assert can_access_lead(Identity(user_id="d", role=Role.DOCTOR), lead)

    def test_consultant_sees_assigned_leads_only(self) -> None:
        consultant = Identity(user_id="c1", role=Role.CONSULTANT)

        assert can_access_lead(consultant, self._lead("p1", assigned="c1"))
        assert not can_access_lead(consultant, self._lead("p1", assigned="c2"))
        assert not can_access_lead(consultant, self._lead("p1"))

    def test_patient_sees_own_leads_only(self) -> None:
        patient = Identity(user_id="p1", role=Role.PATIENT)

        assert can_access_lead(patient, self._lead("p1", assigned="c1"))
        assert not can_access_lead(patient, self._lead("p2"))

    def test_anonymous_sees_nothing(self) -> None:
        assert lead_scope_for(ANONYMOUS).nothing is True
        assert lead_scope_for(ANONYMOUS).filter([self._lead("p1")]) == []
