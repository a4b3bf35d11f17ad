"""
Pytest configuration and shared fixtures.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api modules, and wires
the services against in-memory repositories.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.identity import Identity, Role  # noqa: E402
from domain.notification import NotificationEvent  # noqa: E402
from repositories.cart_repository import InMemoryCartRepository  # noqa: E402
from repositories.lead_repository import InMemoryLeadRepository  # noqa: E402
from repositories.stage_history_repository import InMemoryStageHistoryRepository  # noqa: E402
from repositories.user_repository import InMemoryUserRepository  # noqa: E402
from services.approval_service import ApprovalWorkflow  # noqa: E402
from services.cart_service import CartService  # noqa: E402
from services.lead_service import LeadMutator, LeadService  # noqa: E402
from services.locks import KeyedLocks  # noqa: E402

TEST_SECRET = "test-session-secret-with-at-least-32-chars"


class RecordingDispatcher:
    """Keeps every dispatched event for assertions."""

    def __init__(self) -> None:
        self.events: List[NotificationEvent] = []

    def dispatch(self, event: NotificationEvent) -> None:
        self.events.append(event)


class FailingDispatcher:
    def __init__(self) -> None:
        self.attempts = 0

    def dispatch(self, event: NotificationEvent) -> None:
        self.attempts += 1
        raise ConnectionError("smtp unavailable")


class TickingClock:
    """UTC clock that moves one second per call, so timestamps are ordered."""

    def __init__(self, start: datetime = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)) -> None:
        self._now = start

    def __call__(self) -> datetime:
        self._now = self._now + timedelta(seconds=1)
        return self._now


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def doctor() -> Identity:
    return Identity(user_id="doctor-1", role=Role.DOCTOR)


@pytest.fixture
def consultant() -> Identity:
    return Identity(user_id="consultant-1", role=Role.CONSULTANT)


@pytest.fixture
def other_consultant() -> Identity:
    return Identity(user_id="consultant-2", role=Role.CONSULTANT)


@pytest.fixture
def vendor() -> Identity:
    return Identity(user_id="vendor-1", role=Role.VENDOR, is_external_vendor=True, affiliate_code="AFF-01")


@pytest.fixture
def patient() -> Identity:
    return Identity(user_id="patient-1", role=Role.PATIENT)


@pytest.fixture
def other_patient() -> Identity:
    return Identity(user_id="patient-2", role=Role.PATIENT)


@pytest.fixture
def users(admin, doctor, consultant, other_consultant, vendor, patient, other_patient) -> InMemoryUserRepository:
    return InMemoryUserRepository(
        [admin, doctor, consultant, other_consultant, vendor, patient, other_patient]
    )


@pytest.fixture
def lead_repo() -> InMemoryLeadRepository:
    return InMemoryLeadRepository()


@pytest.fixture
def history_repo() -> InMemoryStageHistoryRepository:
    return InMemoryStageHistoryRepository()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def mutator(lead_repo, history_repo, clock) -> LeadMutator:
    return LeadMutator(lead_repo, history_repo, locks=KeyedLocks(), clock=clock)


@pytest.fixture
def lead_service(lead_repo, users, history_repo, mutator, clock) -> LeadService:
    return LeadService(lead_repo, users, history_repo, mutator=mutator, clock=clock)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def failing_dispatcher() -> FailingDispatcher:
    return FailingDispatcher()


@pytest.fixture
def workflow(mutator, dispatcher) -> ApprovalWorkflow:
    return ApprovalWorkflow(mutator, dispatcher)


@pytest.fixture
def cart_service() -> CartService:
    return CartService(InMemoryCartRepository())


@pytest.fixture
def new_lead(lead_service, consultant, patient):
    """A lead at `novo` for `patient`, assigned to `consultant`."""

    result = lead_service.create_lead(consultant, patient.user_id, "site")
    assert result.success
    return result.lead
