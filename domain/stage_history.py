"""
Domain: lead stage history.

Every status change of a Lead, including its creation at `novo`, is recorded
as an immutable StageChange. History is append-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from .lead import LeadStatus
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class StageChange:
    """
    Record of one status change.

    previous_status is None only for the entry written at creation.
    """

    change_id: UUID
    lead_id: UUID
    previous_status: Optional[LeadStatus]
    new_status: LeadStatus
    by_user_id: str
    created_at: datetime
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    @staticmethod
    def record(
        *,
        lead_id: UUID,
        previous_status: Optional[LeadStatus],
        new_status: LeadStatus,
        by_user_id: str,
        now: datetime,
        notes: Optional[str] = None,
    ) -> "StageChange":
        return StageChange(
            change_id=uuid4(),
            lead_id=lead_id,
            previous_status=previous_status,
            new_status=new_status,
            by_user_id=by_user_id,
            created_at=now,
            notes=notes,
        )
