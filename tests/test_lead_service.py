"""
Tests for `services/lead_service.py`.

Covers:
- Lead creation rules (patients for themselves, staff become owners).
- Single-lead access follows the same scoping as listing.
- Field patches never touch status or patient_id.
- One-time consultant assignment; admin-only reassignment.
- Stage history and purchase capability.
"""

from __future__ import annotations

from uuid import uuid4

from domain.errors import FailureKind
from domain.identity import ANONYMOUS
from domain.lead import LeadPriority, LeadStatus


class TestCreateLead:
    def test_creates_lead_at_novo(self, lead_service, admin, patient) -> None:
        """Scenario: create lead for patient P with source 'site' -> status novo."""

        result = lead_service.create_lead(admin, patient.user_id, "site")

        assert result.success is True
        assert result.changed is True
        assert result.lead.status is LeadStatus.NOVO
        assert result.lead.priority is LeadPriority.MEDIUM
        assert result.lead.source == "site"
        assert result.lead.client_id == admin.user_id
        assert result.lead.prescription_approved is False
        assert result.lead.anvisa_approved is False

    def test_missing_patient_is_validation_error(self, lead_service, admin) -> None:
        for patient_id in (None, "", "  "):
            result = lead_service.create_lead(admin, patient_id)
            assert result.success is False
            assert result.failure.kind is FailureKind.VALIDATION_ERROR
            assert result.failure.field == "patient_id"

    def test_anonymous_cannot_create(self, lead_service, patient) -> None:
        result = lead_service.create_lead(ANONYMOUS, patient.user_id)

        assert result.failure.kind is FailureKind.FORBIDDEN

    def test_patient_creates_only_for_themselves(self, lead_service, patient, other_patient) -> None:
        own = lead_service.create_lead(patient, patient.user_id)
        foreign = lead_service.create_lead(patient, other_patient.user_id)

        assert own.success is True
        assert own.lead.assigned_consultant_id is None
        assert foreign.failure.kind is FailureKind.FORBIDDEN

    def test_patient_gets_existing_lead_back(self, lead_service, lead_repo, patient) -> None:
        first = lead_service.create_lead(patient, patient.user_id, "intake")
        again = lead_service.create_lead(patient, patient.user_id, "intake")

        assert again.success is True
        assert again.changed is False
        assert again.lead.lead_id == first.lead.lead_id
        assert len(lead_repo.list_for_owner(patient)) == 1

    def test_staff_may_open_more_leads_for_a_patient(self, lead_service, lead_repo, admin, patient) -> None:
        lead_service.create_lead(patient, patient.user_id)
        second = lead_service.create_lead(admin, patient.user_id)

        assert second.changed is True
        assert len(lead_repo.list_for_owner(patient)) == 2

    def test_consultant_becomes_owner(self, lead_service, consultant, patient) -> None:
        result = lead_service.create_lead(consultant, patient.user_id, "whatsapp")

        assert result.lead.consultant_id == consultant.user_id
        assert result.lead.assigned_consultant_id == consultant.user_id
        assert result.lead.assigned_at is not None

    def test_unknown_priority(self, lead_service, admin, patient) -> None:
        result = lead_service.create_lead(admin, patient.user_id, priority="whenever")

        assert result.failure.kind is FailureKind.VALIDATION_ERROR
        assert result.failure.field == "priority"

    def test_creation_is_recorded_in_history(self, lead_service, admin, new_lead) -> None:
        history = lead_service.get_lead_history(admin, new_lead.lead_id)

        assert history.success is True
        assert len(history.changes) == 1
        assert history.changes[0].previous_status is None
        assert history.changes[0].new_status is LeadStatus.NOVO


class TestGetAndList:
    def test_get_missing_lead(self, lead_service, admin) -> None:
        result = lead_service.get_lead(admin, uuid4())

        assert result.failure.kind is FailureKind.NOT_FOUND

    def test_get_respects_scope(self, lead_service, new_lead, patient, other_patient, other_consultant, doctor) -> None:
        assert lead_service.get_lead(patient, new_lead.lead_id).success is True
        assert lead_service.get_lead(doctor, new_lead.lead_id).success is True
        assert lead_service.get_lead(other_patient, new_lead.lead_id).failure.kind is FailureKind.FORBIDDEN
        assert lead_service.get_lead(other_consultant, new_lead.lead_id).failure.kind is FailureKind.FORBIDDEN
        assert lead_service.get_lead(ANONYMOUS, new_lead.lead_id).failure.kind is FailureKind.FORBIDDEN

    def test_consultant_lists_only_assigned_leads(
        self, lead_service, admin, consultant, other_consultant, patient, other_patient
    ) -> None:
        """Scenario: a consultant sees only leads assigned to them."""

        mine = lead_service.create_lead(consultant, patient.user_id).lead
        lead_service.create_lead(other_consultant, other_patient.user_id)
        lead_service.create_lead(admin, other_patient.user_id)

        listed = lead_service.list_leads_for_owner(consultant)

        assert [lead.lead_id for lead in listed] == [mine.lead_id]
        assert all(lead.assigned_consultant_id == consultant.user_id for lead in listed)
        assert len(lead_service.list_leads_for_owner(admin)) == 3

    def test_patient_lists_own_leads(self, lead_service, admin, patient, other_patient) -> None:
        lead_service.create_lead(admin, patient.user_id)
        lead_service.create_lead(admin, other_patient.user_id)

        listed = lead_service.list_leads_for_owner(patient)

        assert [lead.patient_id for lead in listed] == [patient.user_id]

    def test_anonymous_lists_nothing(self, lead_service, new_lead) -> None:
        assert lead_service.list_leads_for_owner(ANONYMOUS) == []

    def test_status_filter(self, lead_service, workflow, admin, new_lead, patient) -> None:
        other = lead_service.create_lead(admin, patient.user_id).lead
        workflow.advance_stage(admin, other.lead_id)

        novo = lead_service.list_leads_for_owner(admin, status=LeadStatus.NOVO)
        contato = lead_service.list_leads_for_owner(admin, status=LeadStatus.CONTATO_INICIAL)

        assert [lead.lead_id for lead in novo] == [new_lead.lead_id]
        assert [lead.lead_id for lead in contato] == [other.lead_id]


class TestUpdateFields:
    def test_updates_crm_fields(self, lead_service, consultant, new_lead) -> None:
        result = lead_service.update_lead_fields(
            consultant, new_lead.lead_id, {"notes": "Called twice", "priority": "high"}
        )

        assert result.success is True
        assert result.lead.notes == "Called twice"
        assert result.lead.priority is LeadPriority.HIGH
        assert result.lead.version == new_lead.version + 1
        assert result.lead.status is LeadStatus.NOVO

    def test_status_patch_rejected(self, lead_service, admin, new_lead) -> None:
        result = lead_service.update_lead_fields(admin, new_lead.lead_id, {"status": "finalizado"})

        assert result.failure.kind is FailureKind.VALIDATION_ERROR
        assert result.failure.field == "status"
        assert lead_service.get_lead(admin, new_lead.lead_id).lead.status is LeadStatus.NOVO

    def test_patient_id_patch_rejected(self, lead_service, admin, new_lead) -> None:
        result = lead_service.update_lead_fields(admin, new_lead.lead_id, {"patient_id": "someone-else"})

        assert result.failure.kind is FailureKind.VALIDATION_ERROR

    def test_malformed_list_is_validation_error(self, lead_service, admin, new_lead) -> None:
        result = lead_service.update_lead_fields(admin, new_lead.lead_id, {"tags": 5})

        assert result.success is False
        assert result.failure.kind is FailureKind.VALIDATION_ERROR
        assert result.failure.field == "tags"
        assert lead_service.get_lead(admin, new_lead.lead_id).lead.version == new_lead.version

    def test_patient_cannot_edit(self, lead_service, patient, new_lead) -> None:
        result = lead_service.update_lead_fields(patient, new_lead.lead_id, {"notes": "hi"})

        assert result.failure.kind is FailureKind.FORBIDDEN

    def test_out_of_scope_consultant_cannot_edit(self, lead_service, other_consultant, new_lead) -> None:
        result = lead_service.update_lead_fields(other_consultant, new_lead.lead_id, {"notes": "hi"})

        assert result.failure.kind is FailureKind.FORBIDDEN

    def test_no_op_patch_commits_nothing(self, lead_service, admin, new_lead) -> None:
        result = lead_service.update_lead_fields(admin, new_lead.lead_id, {})

        assert result.success is True
        assert result.changed is False
        assert result.lead.version == new_lead.version


class TestAssignConsultant:
    def test_consultant_claims_unassigned_lead(self, lead_service, admin, consultant, patient) -> None:
        lead = lead_service.create_lead(admin, patient.user_id).lead

        result = lead_service.assign_consultant(consultant, lead.lead_id, consultant.user_id)

        assert result.success is True
        assert result.lead.assigned_consultant_id == consultant.user_id
        assert result.lead.assigned_at is not None

    def test_only_admin_can_reassign(self, lead_service, admin, other_consultant, new_lead) -> None:
        denied = lead_service.assign_consultant(other_consultant, new_lead.lead_id, other_consultant.user_id)
        allowed = lead_service.assign_consultant(admin, new_lead.lead_id, other_consultant.user_id)

        assert denied.failure.kind is FailureKind.FORBIDDEN
        assert allowed.success is True
        assert allowed.lead.assigned_consultant_id == other_consultant.user_id

    def test_target_must_be_staff(self, lead_service, admin, patient, doctor, new_lead) -> None:
        for target in (patient.user_id, doctor.user_id, "ghost", ""):
            result = lead_service.assign_consultant(admin, new_lead.lead_id, target)
            assert result.failure.kind is FailureKind.VALIDATION_ERROR
            assert result.failure.field == "consultant_id"

    def test_requires_consultant_or_admin(self, lead_service, doctor, vendor, new_lead) -> None:
        for actor in (doctor, vendor):
            result = lead_service.assign_consultant(actor, new_lead.lead_id, vendor.user_id)
            assert result.failure.kind is FailureKind.FORBIDDEN

    def test_missing_lead(self, lead_service, admin, consultant) -> None:
        result = lead_service.assign_consultant(admin, uuid4(), consultant.user_id)

        assert result.failure.kind is FailureKind.NOT_FOUND


class TestDeleteLead:
    def test_deletes_lead_and_history(self, lead_service, history_repo, admin, new_lead) -> None:
        result = lead_service.delete_lead(admin, new_lead.lead_id)

        assert result.success is True
        assert result.changed is True
        assert result.lead.lead_id == new_lead.lead_id
        assert lead_service.get_lead(admin, new_lead.lead_id).failure.kind is FailureKind.NOT_FOUND
        assert history_repo.list_for_lead(new_lead.lead_id) == []

    def test_assigned_consultant_can_delete(self, lead_service, consultant, new_lead) -> None:
        assert lead_service.delete_lead(consultant, new_lead.lead_id).success is True

    def test_out_of_scope_consultant_cannot_delete(self, lead_service, admin, other_consultant, new_lead) -> None:
        result = lead_service.delete_lead(other_consultant, new_lead.lead_id)

        assert result.failure.kind is FailureKind.FORBIDDEN
        assert lead_service.get_lead(admin, new_lead.lead_id).success is True

    def test_requires_consultant_or_admin(self, lead_service, doctor, vendor, patient, new_lead) -> None:
        for actor in (doctor, vendor, patient, ANONYMOUS):
            result = lead_service.delete_lead(actor, new_lead.lead_id)
            assert result.failure.kind is FailureKind.FORBIDDEN

    def test_missing_lead(self, lead_service, admin) -> None:
        assert lead_service.delete_lead(admin, uuid4()).failure.kind is FailureKind.NOT_FOUND


class TestCanPurchase:
    def test_requires_both_tracks(self, lead_service, workflow, doctor, patient, new_lead) -> None:
        assert lead_service.can_purchase(patient) is False

        workflow.approve_prescription(doctor, new_lead.lead_id)
        assert lead_service.can_purchase(patient) is False

        workflow.approve_authorization(doctor, new_lead.lead_id)
        assert lead_service.can_purchase(patient) is True

    def test_staff_never_purchase(self, lead_service, admin) -> None:
        assert lead_service.can_purchase(admin) is False
        assert lead_service.can_purchase(ANONYMOUS) is False
